import io
import re

from setuptools import find_packages, setup

__version__ = re.search(
    r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]',
    io.open("src/detour/version.py", encoding="utf_8_sig").read(),
).group(1)


setup(
    name="detour-python",
    version=__version__,
    description="detour is a Python library for driving resumable path searches with retries.",
    long_description="""detour is a Python library for driving resumable path searches tick by tick, retrying with relaxed constraints.""",
    package_dir={"": "src"},
    packages=find_packages("src"),
    zip_safe=False,
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "randomname",
        "numpy",
        "pydantic>=2",
        "typing_extensions",
        "sortedcontainers",
        "fire",
        "orjson",
    ],
    extras_require={
        "tests": ["pytest"],
    },
)
