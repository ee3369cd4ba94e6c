[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "enclaver"
version = "0.1.0"
description = "Manifests, egress policy, nitro-cli wrappers, an attestation API and supervisor helpers for Nitro Enclaves"
requires-python = ">=3.11"
keywords = ["enclave", "nitro", "attestation", "docker", "egress", "policy", "manifest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: Security",
]
dependencies = [
    "pyyaml",
    "cryptography",
    "aiohttp",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["enclaver"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
