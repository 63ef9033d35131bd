"""Links from IAM actions to the AWS Service Authorization Reference."""

from __future__ import annotations

from typing import Dict, Final

DOCS_BASE_URL: Final[str] = "https://docs.aws.amazon.com/service-authorization/latest/reference"

# Service prefix -> reference page slug.
SERVICE_DOC_SLUGS: Final[Dict[str, str]] = {
    # Compute
    "ec2": "amazonec2",
    "lambda": "awslambda",
    "ecs": "amazonelasticcontainerservice",
    "eks": "amazonelastickubernetesservice",
    "batch": "awsbatch",
    "lightsail": "amazonlightsail",
    "elasticbeanstalk": "awselasticbeanstalk",
    # Storage
    "s3": "amazons3",
    "s3-object-lambda": "amazons3objectlambda",
    "ebs": "amazonelasticblockstore",
    "efs": "amazonelasticfilesystem",
    "glacier": "s3glacier",
    "backup": "awsbackup",
    # Database
    "dynamodb": "amazondynamodb",
    "rds": "amazonrds",
    "redshift": "amazonredshift",
    "elasticache": "amazonelasticache",
    "neptune-db": "amazonneptune",
    "docdb-elastic": "amazondocumentdbelasticclusters",
    # Networking
    "elasticloadbalancing": "elasticloadbalancing",
    "route53": "amazonroute53",
    "cloudfront": "amazoncloudfront",
    "apigateway": "amazonapigateway",
    "vpc": "amazonvpc",
    # Security and identity
    "iam": "awsidentityandaccessmanagementiam",
    "sts": "awssecuritytokenservice",
    "kms": "awskeymanagementservice",
    "secretsmanager": "awssecretsmanager",
    "acm": "awscertificatemanager",
    "cognito-idp": "amazoncognitouserpools",
    "cognito-identity": "amazoncognitoidentity",
    "sso": "awsiamidentitycentersuccessortoawssinglesignon",
    # Management and governance
    "cloudwatch": "amazoncloudwatch",
    "logs": "amazoncloudwatchlogs",
    "events": "amazoneventbridge",
    "cloudtrail": "awscloudtrail",
    "config": "awsconfig",
    "ssm": "awssystemsmanager",
    "organizations": "awsorganizations",
    "cloudformation": "awscloudformation",
    # Application integration
    "sns": "amazonsns",
    "sqs": "amazonsqs",
    "states": "awsstepfunctions",
    "mq": "amazonmq",
    # Analytics
    "athena": "amazonathena",
    "glue": "awsglue",
    "kinesis": "amazonkinesis",
    "firehose": "amazonkinesisfirehose",
    "es": "amazonelasticsearchservice",
    "opensearch": "amazonopensearchservice",
    # Machine learning
    "sagemaker": "amazonsagemaker",
    "bedrock": "amazonbedrock",
    "comprehend": "amazoncomprehend",
    "rekognition": "amazonrekognition",
    "textract": "amazontextract",
    "translate": "amazontranslate",
    # Developer tools
    "codebuild": "awscodebuild",
    "codecommit": "awscodecommit",
    "codedeploy": "awscodedeploy",
    "codepipeline": "awscodepipeline",
    "codestar": "awscodestar",
    # Containers
    "ecr": "amazonelasticcontainerregistry",
    # Other
    "autoscaling": "amazonec2autoscaling",
    "application-autoscaling": "applicationautoscaling",
    "servicecatalog": "awsservicecatalog",
    "resource-groups": "awsresourcegroups",
    "tag": "amazonresourcegrouptaggingapi",
    "access-analyzer": "awsiamaccessanalyzer",
    "health": "awshealthapisandnotifications",
    "support": "awssupport",
    "pricing": "awspricelistservice",
    "ce": "awscostexplorerservice",
    "budgets": "awsbudgetservice",
    "cur": "awscostandusagereport",
}


def get_action_doc_url(action: str) -> str | None:
    """Return the reference URL for an action, or None when the service is unknown."""

    service, _, action_name = action.partition(":")
    if not service or not action_name:
        return None
    slug = SERVICE_DOC_SLUGS.get(service.lower())
    if slug is None:
        return None
    # the text fragment highlights the action row on the page
    return f"{DOCS_BASE_URL}/list_{slug}.html#{slug}-actions-as-permissions:~:text={action_name}"


def format_action_with_link(action: str) -> str:
    url = get_action_doc_url(action)
    if url:
        return f"[`{action}`]({url})"
    return f"`{action}`"
