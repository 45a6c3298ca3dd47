"""
Request/response boundary for mixed-integer linear program solvers.

The formulation code only builds :class:`MilpRequest` and reads :class:`MilpResponse`,
the numerical library is used only in the implementation of :class:`MilpSolver`.
"""
from enum import Enum
from io import StringIO
from math import inf
from typing import Dict, List, Optional

import numpy as np
from scipy.optimize import milp, LinearConstraint, Bounds
from scipy.sparse import csr_matrix


class MilpVar():
    """
    :ivar index: index of the variable in request
    """

    def __init__(self, index: int, name: str, lb: float, ub: float, isInteger: bool):
        self.index = index
        self.name = name
        self.lb = lb
        self.ub = ub
        self.isInteger = isInteger

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self.name:s} [{self.lb}, {self.ub}]{' int' if self.isInteger else ''}>"


class MilpConstraint():
    """
    lb <= sum(coef * var for var, coef in coefs.items()) <= ub
    """

    def __init__(self, name: str, coefs: Dict[int, float], lb: float, ub: float):
        self.name = name
        self.coefs = coefs
        self.lb = lb
        self.ub = ub


class MilpRequest():
    """
    Minimization problem with linear constraints and linear objective.

    :ivar timeLimit: maximum time for the solver in seconds, None means unlimited
    """

    def __init__(self, name: str, timeLimit: Optional[float]=None):
        self.name = name
        self.vars: List[MilpVar] = []
        self.constraints: List[MilpConstraint] = []
        self.objective: Dict[int, float] = {}
        self.timeLimit = timeLimit

    def addVar(self, name: str, lb: float=0.0, ub: float=inf, isInteger: bool=False) -> int:
        v = MilpVar(len(self.vars), name, lb, ub, isInteger)
        self.vars.append(v)
        return v.index

    def addBinVar(self, name: str) -> int:
        return self.addVar(name, 0, 1, True)

    def addConstraint(self, name: str, coefs: Dict[int, float], lb: float=-inf, ub: float=inf):
        assert lb != -inf or ub != inf, ("Constraint without any bound", name)
        self.constraints.append(MilpConstraint(name, coefs, lb, ub))

    def addToObjective(self, var: int, coef: float):
        self.objective[var] = self.objective.get(var, 0.0) + coef

    def dump(self, out: StringIO):
        """
        Write the problem in human readable form
        """
        names = [v.name for v in self.vars]
        out.write(f"problem {self.name:s}\n")
        out.write("minimize\n  ")
        out.write(" + ".join(f"{c:g}*{names[v]:s}" for v, c in sorted(self.objective.items())))
        out.write("\nsubject to\n")
        for c in self.constraints:
            expr = " + ".join(f"{coef:g}*{names[v]:s}" for v, coef in sorted(c.coefs.items()))
            out.write(f"  {c.name:s}: {c.lb:g} <= {expr:s} <= {c.ub:g}\n")
        out.write("bounds\n")
        for v in self.vars:
            out.write(f"  {v.lb:g} <= {v.name:s} <= {v.ub:g}{' int' if v.isInteger else ''}\n")


class MILP_STATUS(Enum):
    OPTIMAL, INFEASIBLE, UNBOUNDED, TIME_LIMIT, ERROR = range(5)


class MilpResponse():
    """
    :ivar values: values of variables (in order of variables in request), None if there is no solution
    """

    def __init__(self, status: MILP_STATUS, values: Optional[List[float]], objective: Optional[float], message: str=""):
        self.status = status
        self.values = values
        self.objective = objective
        self.message = message

    def getInt(self, var: int) -> int:
        return int(round(self.values[var]))

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self.status.name:s} objective={self.objective} {self.message:s}>"


class MilpSolver():

    def solve(self, req: MilpRequest) -> MilpResponse:
        raise NotImplementedError("Implement this in implementation of this abstract class", self)


class ScipyMilpSolver(MilpSolver):
    """
    Solver which uses :func:`scipy.optimize.milp` (HiGHS)
    """
    _STATUS = {
        0: MILP_STATUS.OPTIMAL,
        1: MILP_STATUS.TIME_LIMIT,
        2: MILP_STATUS.INFEASIBLE,
        3: MILP_STATUS.UNBOUNDED,
    }

    def solve(self, req: MilpRequest) -> MilpResponse:
        varCnt = len(req.vars)
        if varCnt == 0:
            return MilpResponse(MILP_STATUS.OPTIMAL, [], 0.0)

        c = np.zeros(varCnt)
        for v, coef in req.objective.items():
            c[v] = coef
        integrality = np.array([1 if v.isInteger else 0 for v in req.vars])
        bounds = Bounds(np.array([v.lb for v in req.vars], dtype=float),
                        np.array([v.ub for v in req.vars], dtype=float))

        if req.constraints:
            rows = []
            cols = []
            data = []
            for row, con in enumerate(req.constraints):
                for v, coef in con.coefs.items():
                    rows.append(row)
                    cols.append(v)
                    data.append(coef)
            A = csr_matrix((data, (rows, cols)), shape=(len(req.constraints), varCnt))
            constraints = LinearConstraint(A,
                                           np.array([con.lb for con in req.constraints], dtype=float),
                                           np.array([con.ub for con in req.constraints], dtype=float))
        else:
            constraints = None

        options = {"disp": False}
        if req.timeLimit is not None:
            options["time_limit"] = req.timeLimit

        res = milp(c, integrality=integrality, bounds=bounds, constraints=constraints, options=options)
        status = self._STATUS.get(res.status, MILP_STATUS.ERROR)
        if status is MILP_STATUS.OPTIMAL:
            return MilpResponse(status, [float(x) for x in res.x], float(res.fun), res.message)
        else:
            return MilpResponse(status, None, None, res.message)
