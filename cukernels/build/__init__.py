from .builder import build_modules, make_strategy  # noqa: F401
from .events import BuildEvent, BuildLog  # noqa: F401
from .strategy import (  # noqa: F401
    STRATEGIES, BuildResult, CompilationStrategy, CubinStrategy, PtxStrategy,
)
