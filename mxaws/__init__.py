"""
mxaws - Orchestration helpers for EC2, RDS, CodeDeploy and DynamoDB.

This package sequences boto3 calls into higher-level operations: resizing
instances, waiting for databases to accept logins, and running CodeDeploy
deployments with human-readable failure reports.
"""

__version__ = "0.2.0"
__author__ = "mxaws contributors"
