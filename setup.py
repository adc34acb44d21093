# type: ignore
"""dnsmasq_exporter setup.py for setuptools."""
import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="dnsmasq_exporter",
    version="0.1.0.dev0",
    description="dnsmasq_exporter is a Prometheus exporter for dnsmasq DNS cache and DHCP lease statistics.",
    license="Apache License 2.0",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=["dnsmasq_exporter"],
    entry_points={"console_scripts": ["dnsmasq_exporter = dnsmasq_exporter.entrypoint:main"]},
    classifiers=[
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=["dnspython", "prometheus_client", "PyYAML"],
    extras_require={"test": ["pytest", "pytest-mock", "requests"]},
    include_package_data=True,
)
