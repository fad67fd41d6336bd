import inspect
import shutil
import sys

import pytest

from cukernels.contrib.nvrtc import is_nvrtc_available


def main():
    test_file = inspect.getsourcefile(sys._getframe(1))
    sys.exit(pytest.main([test_file] + sys.argv[1:]))


requires_nvcc = pytest.mark.skipif(shutil.which("nvcc") is None, reason="nvcc is not available")
requires_nvrtc = pytest.mark.skipif(not is_nvrtc_available, reason="cuda-python (NVRTC) is not available")
