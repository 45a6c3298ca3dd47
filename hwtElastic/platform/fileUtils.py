from io import StringIO
from pathlib import Path
from typing import Union, Callable, Tuple


# :note: bool in return type of OutputStreamGetter specifies if the stream should be closed or not
OutputStreamGetter = Callable[[str], Tuple[StringIO, bool]]


def outputFileGetter(rootDir: Union[Path, str], fileName: str) -> OutputStreamGetter:
    """
    :return: function which opens rootDir/<folderName>/fileName for writing
    """
    if not isinstance(rootDir, Path):
        rootDir = Path(rootDir)

    def getter(folderName: str):
        d = rootDir / folderName
        d.mkdir(parents=True, exist_ok=True)
        return open(d / fileName, "w"), True

    return getter


def stringIoGetter(buff: StringIO) -> OutputStreamGetter:
    """
    :return: function which returns the buff and which does not close it (used for dumps into memory)
    """

    def getter(folderName: str):
        return buff, False

    return getter
