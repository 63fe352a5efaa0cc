from setuptools import setup, find_namespace_packages


# 读取README文件
def read_readme():
    with open("README.md", "r", encoding="utf-8") as fh:
        return fh.read()


# 读取requirements文件
def read_requirements(name="requirements.txt"):
    with open(f"requirements/{name}", "r", encoding="utf-8") as fh:
        return [
            line.strip() for line in fh if line.strip() and not line.startswith("#")
        ]


setup(
    name="boltzmann-emf",
    version="0.1.0",
    description="A PyTorch library for training Restricted and Deep Boltzmann Machines "
    "with contrastive divergence and extended mean-field (TAP) negative phases",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["boltzmann.*"]),
    python_requires=">=3.8",
    install_requires=read_requirements(),
    extras_require={
        "examples": read_requirements("requirements-examples.txt"),
    },
    keywords="boltzmann machine, restricted boltzmann machine, deep boltzmann machine, "
    "mean field, TAP, pytorch, machine learning",
    license="Apache License 2.0",
    zip_safe=False,
)
