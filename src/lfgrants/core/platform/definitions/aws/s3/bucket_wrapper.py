# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging

from botocore.exceptions import ClientError, WaiterError

from lfgrants.core.platform.definitions.aws.common import is_waiter_timeout

logger = logging.getLogger(__name__)

"""
Refer 
https://github.com/awsdocs/aws-doc-sdk-examples/blob/master/python/example_code/s3/s3_basics/bucket_wrapper.py
"""

MAX_BUCKET_LEN = 63
S3_BUCKET_ARN_FORMAT = "arn:{0}:s3:::{1}"


def get_bucket_arn(bucket_name: str, partition: str = "aws") -> str:
    return S3_BUCKET_ARN_FORMAT.format(partition, bucket_name)


def create_bucket(s3, name, region):
    """
    Create an Amazon S3 bucket with the specified name and in the specified Region.
    :param name: The name of the bucket to create. This name must be globally unique
                 and must adhere to bucket naming requirements.
    :param region: The Region in which to create the bucket. If this is not specified,
                   the Region configured in your shared credentials is used. If no
                   Region is configured, 'us-east-1' is used.
    :return: The newly created bucket.
    """
    if len(name) > MAX_BUCKET_LEN:
        raise ValueError(f"Bucket name {name!r} exceeds the max length {MAX_BUCKET_LEN}!")

    try:
        if region != "us-east-1":
            bucket = s3.create_bucket(Bucket=name, CreateBucketConfiguration={"LocationConstraint": region})
        else:
            bucket = s3.create_bucket(Bucket=name)

        bucket.wait_until_exists()

        logger.info("Created bucket '%s' in region=%s", bucket.name, s3.meta.client.meta.region_name)
    except ClientError as error:
        logger.exception("Couldn't create bucket named '%s' in region=%s.", name, region)
        if error.response["Error"]["Code"] == "IllegalLocationConstraintException":
            logger.error(
                "When the session Region is anything other than us-east-1, "
                "you must specify a LocationConstraint that matches the "
                "session Region. The current session Region is %s and the "
                "LocationConstraint Region is %s.",
                s3.meta.client.meta.region_name,
                region,
            )
        raise error
    else:
        return bucket


def get_bucket(s3, name):
    return s3.Bucket(name)


def empty_bucket(bucket):
    """
    Remove all objects (and their versions) from a bucket.
    :param bucket: The bucket to empty.
    """
    try:
        bucket.object_versions.delete()
        bucket.objects.delete()
        logger.info("Emptied bucket '%s'.", bucket.name)
        return True
    except ClientError:
        logger.exception("Couldn't empty bucket '%s'.", bucket.name)
        raise


def delete_bucket(bucket, force: bool = False):
    """
    Delete a bucket. The bucket must be empty or an error is raised, unless 'force' is set in which case it is
    emptied first.
    :param bucket: The bucket to delete.
    """
    try:
        if force:
            empty_bucket(bucket)
        bucket.delete()
        try:
            bucket.wait_until_not_exists()
        except WaiterError as error:
            if not is_waiter_timeout(error):  # sometimes it takes time for S3 to delete, that is OK, we can move on.
                raise
        logger.info("Bucket %s successfully deleted.", bucket.name)
        return True
    except ClientError:
        logger.exception("Couldn't delete bucket %s.", bucket.name)
        raise
