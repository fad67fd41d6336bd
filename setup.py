import io
import os
import sys
import importlib.util
import logging
from typing import List

from setuptools import Command, setup, find_packages
from setuptools.command.build_py import build_py
from setuptools.command.sdist import sdist

# Configure logging with basic settings
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S')

logger = logging.getLogger(__name__)

# Environment variables False/True
PYPI_BUILD = os.environ.get("PYPI_BUILD", "False").lower() == "true"
PACKAGE_NAME = "cukernels"
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))

# Compile the kernel catalog and ship the bindings inside the wheel
WITH_KERNELS = os.environ.get("CUKERNELS_WITH_KERNELS", "False").lower() == "true"
# Include commit ID in package metadata
WITH_COMMITID = os.environ.get("WITH_COMMITID", "True").lower() == "true"


def load_module_from_path(module_name, path):
    spec = importlib.util.spec_from_file_location(module_name, path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


def get_path(*filepath) -> str:
    return os.path.join(ROOT_DIR, *filepath)


def get_requirements(file_path: str = "requirements.txt") -> List[str]:
    """Get Python package dependencies from requirements.txt."""
    with open(get_path(file_path)) as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith("#")]
    return requirements


def get_cukernels_version(with_commit_id=False) -> str:
    if with_commit_id:
        version_provider = load_module_from_path("version_provider", get_path("version_provider.py"))
        return version_provider.dynamic_metadata("version")
    with open(get_path("VERSION")) as version_file:
        return version_file.read().strip()


def read_readme() -> str:
    """Read the README file if present."""
    p = get_path("README.md")
    if os.path.isfile(p):
        return io.open(p, "r", encoding="utf-8").read()
    else:
        return ""


class BuildKernelsCommand(Command):
    """Compile the CUDA kernel catalog into a bindings directory."""

    description = "compile the cukernels CUDA kernel catalog"
    user_options = [
        ("module-format=", None, "ptx or cubin (default: CUKERNELS_MODULE_FORMAT)"),
        ("out-dir=", None, "where modules and bindings are written"),
        ("force", "f", "rebuild even if nothing changed"),
    ]
    boolean_options = ["force"]

    def initialize_options(self):
        self.module_format = None
        self.out_dir = None
        self.force = False

    def finalize_options(self):
        pass

    def run(self):
        # Imported lazily: plain installs must not need the CUDA toolchain.
        from cukernels.build import build_modules

        result = build_modules(self.module_format, self.out_dir, force=self.force)
        if result is not None:
            logger.info(f"Built {len(result.artifacts)} {result.module_format.value} modules "
                        f"into {result.out_dir}")


class CukernelsBuildPyCommand(build_py):
    """Customized setuptools build_py command - optionally compiles the kernels into the build tree."""

    def run(self):
        build_py.run(self)
        if not WITH_KERNELS:
            return
        out_dir = os.path.join(self.build_lib, PACKAGE_NAME, "_generated")
        logger.info(f"Building kernel modules into {out_dir}")
        build_kernels = self.reinitialize_command("build_kernels")
        build_kernels.out_dir = out_dir
        build_kernels.force = True
        self.run_command("build_kernels")


class CukernelsSdistCommand(sdist):
    """Customized setuptools sdist command - no version label in the sdist name."""

    def make_distribution(self):
        self.distribution.metadata.name = PACKAGE_NAME
        self.distribution.metadata.version = get_cukernels_version(with_commit_id=False)
        super().make_distribution()


setup(
    name=PACKAGE_NAME,
    version=(get_cukernels_version(with_commit_id=False)
             if PYPI_BUILD else get_cukernels_version(with_commit_id=WITH_COMMITID)),
    packages=find_packages(where=".", include=[PACKAGE_NAME, f"{PACKAGE_NAME}.*"]),
    package_dir={"": "."},
    description="CUDA kernel catalog compiled to PTX or CUBIN modules, with Python bindings.",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    platforms=[
        "Environment :: GPU :: NVIDIA CUDA",
        "Operating System :: POSIX :: Linux",
    ],
    license="MIT",
    keywords="CUDA, PTX, CUBIN, NVRTC, nvcc",
    classifiers=[
        "Programming Language :: Python :: 3.10",
        "License :: OSI Approved :: MIT License",
        "Intended Audience :: Developers",
    ],
    python_requires=">=3.10",
    install_requires=get_requirements(),
    extras_require={"test": get_requirements("requirements-test.txt")},
    entry_points={
        "console_scripts": ["cukernels-build=cukernels.build.__main__:main"],
    },
    include_package_data=False,
    cmdclass={
        "build_kernels": BuildKernelsCommand,
        "build_py": CukernelsBuildPyCommand,
        "sdist": CukernelsSdistCommand,
    },
)
