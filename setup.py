from setuptools import find_namespace_packages, setup

setup(
    name="chaincut",
    version="0.4.0",
    description="Cut-path geometry: chain detection, part nesting and tool offsets",
    packages=find_namespace_packages(include=["chaincut", "chaincut.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
