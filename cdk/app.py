#!/usr/bin/env python3
"""
AWS CDK App for the Microservices Rolling Update template

This CDK app deploys a containerized service together with the pipeline
that keeps it up to date:
- ECR repository (seeded with the image built from app/)
- VPC, ECS cluster and ALB-fronted Fargate service
- CodeCommit repository for the service source
- CodeBuild project that builds and pushes new images
- CodePipeline (Source -> Build -> Deploy) doing ECS rolling updates

Usage:
    cdk deploy                              # Deploy with defaults
    cdk deploy -c resource_name=demo        # Prefix every resource with "demo"
    cdk deploy -c seed_repository=true      # Push app/ as the first commit
    cdk destroy                             # Clean up everything
"""

import aws_cdk as cdk
from stacks.context import context_flag, context_int
from stacks.rolling_update_stack import RollingUpdateStack


app = cdk.App()

# Get configuration from context or use defaults
account = app.node.try_get_context("account") or None
region = app.node.try_get_context("region") or "us-east-1"
resource_name = app.node.try_get_context("resource_name") or "test"
source_branch = app.node.try_get_context("source_branch") or "main"
desired_count = context_int(app, "desired_count", 2)
seed_repository = context_flag(app, "seed_repository")

RollingUpdateStack(
    app,
    "MicroservicesRollingUpdate",
    resource_name=resource_name,
    source_branch=source_branch,
    desired_count=desired_count,
    seed_repository=seed_repository,
    env=cdk.Environment(
        account=account,
        region=region
    ),
    description="Fargate service with a CodeCommit/CodeBuild/CodePipeline rolling update pipeline"
)

app.synth()
