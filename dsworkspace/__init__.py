"""Data-science workspace provisioning on AWS.

Creates a security group, key pair, S3 bucket and EC2 instances for a
notebook workspace and rolls everything back when any step fails.
"""

__version__ = "0.3.0"
