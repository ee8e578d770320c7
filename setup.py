from setuptools import setup, find_packages

with open("requirements.txt") as f:
    required = f.read().splitlines()

setup(
    name="git-id",
    version="1.0.0",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=required,
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["git-id = git_id.cli:main"]},
    author="se7uh",
    description="Manage multiple git hosting identities (SSH keys, tokens, remotes) on one machine",
    url="https://github.com/se7uh/git-id",
)
