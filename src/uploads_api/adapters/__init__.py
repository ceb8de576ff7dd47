"""
Adapter layer for the Files API.

Contains the object store gateway (S3 via boto3) and the job queue
(filesystem in local-dev, SQS otherwise), shared by the API and the workers.
"""
