import json
from enum import Enum
from pathlib import Path
from typing import List, Union, Optional, Tuple

from hwtElastic.errors import ConfigurationError
from hwtElastic.netlist.context import HsNetlistCtx, HsNodeRef
from hwtElastic.netlist.nodes.channel import HsChannel


class HS_SPEC_ROLE(Enum):
    SPECULATOR, SAVE, COMMIT = range(3)


class HsSpecPosition():
    """
    A position of speculation operation, the operation is inserted on the channel
    connected to output "index" of operation "operation".
    """

    def __init__(self, operation: HsNodeRef, index: int):
        self.operation = operation
        self.index = index

    @classmethod
    def fromJson(cls, d) -> "HsSpecPosition":
        if not isinstance(d, dict) or "operation" not in d or "index" not in d:
            raise ConfigurationError("Speculation position must be an object with \"operation\" and \"index\"", repr(d))
        op = d["operation"]
        if isinstance(op, bool) or not isinstance(op, (str, int)):
            raise ConfigurationError(f"Invalid operation reference {op!r}", repr(op))
        return cls(op, d["index"])

    def resolve(self, netlist: HsNetlistCtx) -> HsChannel:
        return netlist.getChannelOfOutput(self.operation, self.index)

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self.operation!r}:{self.index!r}>"


class HsSpeculationPositions():
    """
    Position of the speculator and of its save and commit operations.
    In automatic mode only the speculator is specified and saves and commits are derived.
    """

    def __init__(self, speculator: HsSpecPosition,
                 saves: Optional[List[HsSpecPosition]]=None,
                 commits: Optional[List[HsSpecPosition]]=None):
        self.speculator = speculator
        self.saves = [] if saves is None else saves
        self.commits = [] if commits is None else commits

    @classmethod
    def fromJson(cls, src: Union[str, Path, dict]) -> "HsSpeculationPositions":
        """
        :param src: a path to a file, JSON string or already parsed dictionary in format
            {"speculator": {"operation": ref, "index": i}, "saves": [...], "commits": [...]}
        """
        if isinstance(src, Path):
            with open(src) as f:
                d = json.load(f)
        elif isinstance(src, str):
            try:
                d = json.loads(src)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Malformed speculation positions: {e}", src)
        else:
            d = src

        if not isinstance(d, dict) or "speculator" not in d:
            raise ConfigurationError("Speculation positions must be an object with \"speculator\"", repr(d))
        lists = []
        for k in ("saves", "commits"):
            v = d.get(k, [])
            if not isinstance(v, list):
                raise ConfigurationError(f"\"{k:s}\" must be a list", repr(v))
            lists.append([HsSpecPosition.fromJson(p) for p in v])

        return cls(HsSpecPosition.fromJson(d["speculator"]), *lists)

    def iterAll(self):
        yield (HS_SPEC_ROLE.SPECULATOR, self.speculator)
        for p in self.saves:
            yield (HS_SPEC_ROLE.SAVE, p)
        for p in self.commits:
            yield (HS_SPEC_ROLE.COMMIT, p)

    def resolve(self, netlist: HsNetlistCtx) -> Tuple[HsChannel, List[HsChannel], List[HsChannel]]:
        """
        :return: channels for speculator, saves and commits
        :raise ConfigurationError: if any reference is invalid or if multiple positions refer to the same channel
        """
        seen = {}
        resolved = {HS_SPEC_ROLE.SPECULATOR: [], HS_SPEC_ROLE.SAVE: [], HS_SPEC_ROLE.COMMIT: []}
        for role, p in self.iterAll():
            ch = p.resolve(netlist)
            prev = seen.get(ch._id, None)
            if prev is not None:
                raise ConfigurationError(f"Position {p} ({role.name}) uses the same channel as {prev[1]} ({prev[0].name})", p.operation)
            seen[ch._id] = (role, p)
            resolved[role].append(ch)

        return resolved[HS_SPEC_ROLE.SPECULATOR][0], resolved[HS_SPEC_ROLE.SAVE], resolved[HS_SPEC_ROLE.COMMIT]

    def __repr__(self):
        return f"<{self.__class__.__name__:s} speculator={self.speculator} saves={self.saves} commits={self.commits}>"
