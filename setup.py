# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------

from setuptools import setup, find_packages
import re


with open("README.md", "r") as fh:
    _long_description = fh.read()


filename = "freezer/constant.py"
version = None

with open(filename, "r") as fh:
    if not re.search("\n+VERSION", fh.read()):
        raise ValueError("VERSION  is not defined in constants.")

with open(filename, "r") as fh:
    for line in fh:
        if re.search("^VERSION", line):
            constant, value = line.strip().split("=")
            if not value:
                raise ValueError("Value for VERSION not defined in constants.")
            else:
                # Strip whitespace and quotation marks
                version = str(value.strip(' "'))
            break

setup(
    name="azure-iot-freezer-sample",
    version=version,
    description="Simulated freezer device for Azure IoT Hub Device Provisioning Service",
    license="MIT License",
    author="Microsoft Corporation",
    author_email="opensource@microsoft.com",
    long_description=_long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    install_requires=[
        "azure-iot-device>=2.12.0,<3.0.0",
        "transitions>=0.9.0,<1.0.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-asyncio",
            "pytest-testdox",
        ]
    },
    python_requires=">=3.8, <4",
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": [
            "freezer=freezer.cli:entry_point",
            "freezer-gui=freezer.gui:entry_point",
        ]
    },
    zip_safe=False,
)
