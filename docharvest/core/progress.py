"""Progress reporting for the orchestration layer."""

import sys
from typing import Optional, Protocol

from tqdm import tqdm


class ProgressReporter(Protocol):
    """Console progress capability injected into the pipeline."""

    def start(self, text: str, total: int) -> None: ...

    def update(self, text: str, advance: int = 0) -> None: ...

    def succeed(self, text: str) -> None: ...

    def warn(self, text: str) -> None: ...

    def fail(self, text: str) -> None: ...


class NullReporter:
    """Reporter that discards everything."""

    def start(self, text: str, total: int) -> None:
        pass

    def update(self, text: str, advance: int = 0) -> None:
        pass

    def succeed(self, text: str) -> None:
        pass

    def warn(self, text: str) -> None:
        pass

    def fail(self, text: str) -> None:
        pass


class TqdmReporter:
    """Progress bar over sources, with warnings printed above the bar."""

    def __init__(self, file=None):
        self.file = file or sys.stderr
        self.bar: Optional[tqdm] = None

    def start(self, text: str, total: int) -> None:
        self.bar = tqdm(total=total, desc=text, unit="source", file=self.file, leave=False)

    def update(self, text: str, advance: int = 0) -> None:
        if self.bar is None:
            return
        self.bar.set_description_str(text)
        if advance:
            self.bar.update(advance)

    def _finish(self, text: str) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None
        tqdm.write(text, file=self.file)

    def succeed(self, text: str) -> None:
        self._finish(f"✔ {text}")

    def warn(self, text: str) -> None:
        tqdm.write(text, file=self.file)

    def fail(self, text: str) -> None:
        self._finish(f"✖ {text}")
