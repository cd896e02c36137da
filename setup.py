import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="pwapi",
    version="0.1.0",
    author="pwapi contributors",
    description="Session, continuation and OAuth handling for the MediaWiki Action API",
    long_description=long_description,
    long_description_content_type="text/markdown",
    include_package_data=True,
    packages=setuptools.find_packages(include=["pwapi"]),
    install_requires=["requests", "oauthlib"],
    classifiers=[
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9"
)
