"""
Rolling Update Stack

This stack creates all AWS resources for a containerized service that is
continuously delivered with ECS rolling updates:
- ECR repository seeded with the image built from app/
- VPC with public subnets in two AZs
- ECS cluster and an ALB-fronted Fargate service
- CodeCommit repository holding the service source
- CodeBuild project that builds and pushes the image
- CodePipeline: Source -> Build -> Deploy
"""

import os

from aws_cdk import (
    Stack,
    RemovalPolicy,
    CfnOutput,
    aws_codebuild as codebuild,
    aws_codecommit as codecommit,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_iam as iam,
    aws_logs as logs,
    aws_s3 as s3,
)
from aws_cdk.aws_ecr_assets import DockerImageAsset, Platform
import cdk_ecr_deployment as ecrdeploy
from constructs import Construct

from stacks.build_spec import IMAGE_DEFINITIONS_FILE, image_build_spec

# Service source: Dockerfile + application code
APP_DIR = os.path.join(os.path.dirname(__file__), "..", "..", "app")


class RollingUpdateStack(Stack):
    """Container service with a CodeCommit -> CodeBuild -> ECS pipeline."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        resource_name: str,
        source_branch: str = "main",
        desired_count: int = 2,
        seed_repository: bool = False,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # ========================================
        # ECR REPOSITORY
        # ========================================

        self.ecr_repo = ecr.Repository(
            self, "EcrRepo",
            repository_name=f"{resource_name}-ecr-repo",
            removal_policy=RemovalPolicy.DESTROY,
            empty_on_delete=True,
        )

        # ========================================
        # INITIAL IMAGE
        # ========================================
        # The service needs an image at :latest before the pipeline has
        # ever run, so the asset is copied into the repository on deploy.

        image_asset = DockerImageAsset(
            self, "DockerImageAsset",
            directory=APP_DIR,
            platform=Platform.LINUX_AMD64,
        )

        image_deployment = ecrdeploy.ECRDeployment(
            self, "DeployDockerImage",
            src=ecrdeploy.DockerImageName(image_asset.image_uri),
            dest=ecrdeploy.DockerImageName(
                f"{self.account}.dkr.ecr.{self.region}.amazonaws.com/"
                f"{self.ecr_repo.repository_name}:latest"
            ),
        )

        # ========================================
        # NETWORK
        # ========================================

        self.vpc = ec2.Vpc(
            self, "Vpc",
            vpc_name=f"{resource_name}-vpc",
            max_azs=2,
            ip_addresses=ec2.IpAddresses.cidr("10.0.0.0/20"),
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=f"{resource_name}-public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                )
            ],
        )

        # ========================================
        # ECS CLUSTER AND SERVICE
        # ========================================

        self.cluster = ecs.Cluster(
            self, "EcsCluster",
            cluster_name=f"{resource_name}-cluster",
            vpc=self.vpc,
        )

        log_group = logs.LogGroup(
            self, "LogGroup",
            log_group_name=f"/aws/ecs/{resource_name}",
            removal_policy=RemovalPolicy.DESTROY,
        )

        # Deployment controller ECS = rolling update
        self.service = ecs_patterns.ApplicationLoadBalancedFargateService(
            self, "FargateService",
            load_balancer_name=f"{resource_name}-lb",
            public_load_balancer=True,
            cluster=self.cluster,
            service_name=f"{resource_name}-service",
            cpu=256,
            memory_limit_mib=512,
            desired_count=desired_count,
            assign_public_ip=True,
            task_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageOptions(
                family=f"{resource_name}-taskdef",
                container_name=f"{resource_name}-container",
                image=ecs.ContainerImage.from_ecr_repository(self.ecr_repo, "latest"),
                environment={
                    "SERVICE_NAME": f"{resource_name}-service",
                },
                log_driver=ecs.AwsLogDriver(
                    stream_prefix="container",
                    log_group=log_group,
                ),
            ),
            deployment_controller=ecs.DeploymentController(
                type=ecs.DeploymentControllerType.ECS
            ),
        )

        # Tasks pull :latest, so the initial image must be pushed first
        self.service.service.node.add_dependency(image_deployment)

        container_name = self.service.task_definition.default_container.container_name

        # ========================================
        # SOURCE REPOSITORY
        # ========================================

        self.source_repo = codecommit.Repository(
            self, "CodeCommitRepo",
            repository_name=f"{resource_name}-codecommit-repo",
            code=(
                codecommit.Code.from_directory(APP_DIR, source_branch)
                if seed_repository else None
            ),
        )

        # ========================================
        # BUILD PROJECT
        # ========================================

        build_log_group = logs.LogGroup(
            self, "BuildLogGroup",
            log_group_name=f"/aws/codebuild/{resource_name}",
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.build_project = codebuild.Project(
            self, "CodeBuildProject",
            project_name=f"{resource_name}-codebuild-project",
            source=codebuild.Source.code_commit(repository=self.source_repo),
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                compute_type=codebuild.ComputeType.SMALL,
                privileged=True,  # Needed for docker build
                environment_variables={
                    "AWS_ACCOUNT_ID": codebuild.BuildEnvironmentVariable(
                        value=self.account
                    ),
                    "REPOSITORY_URI": codebuild.BuildEnvironmentVariable(
                        value=self.ecr_repo.repository_uri
                    ),
                    "CONTAINER_BUILD_PATH": codebuild.BuildEnvironmentVariable(
                        value="."
                    ),
                    "CONTAINER_NAME": codebuild.BuildEnvironmentVariable(
                        value=container_name
                    ),
                },
            ),
            logging=codebuild.LoggingOptions(
                cloud_watch=codebuild.CloudWatchLoggingOptions(
                    log_group=build_log_group
                )
            ),
            build_spec=codebuild.BuildSpec.from_object(image_build_spec()),
        )

        # Grant the build role push access to ECR
        self.build_project.add_to_role_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:CompleteLayerUpload",
                    "ecr:GetAuthorizationToken",
                    "ecr:InitiateLayerUpload",
                    "ecr:PutImage",
                    "ecr:UploadLayerPart",
                ],
                resources=["*"],
            )
        )

        # ========================================
        # PIPELINE
        # ========================================

        self.artifact_bucket = s3.Bucket(
            self, "ArtifactBucket",
            bucket_name=f"{resource_name}-artifact-bucket-{self.account}",
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
        )

        self.pipeline = codepipeline.Pipeline(
            self, "CodePipeline",
            artifact_bucket=self.artifact_bucket,
            pipeline_name=f"{resource_name}-pipeline",
        )

        source_output = codepipeline.Artifact(f"{resource_name}-source")
        self.pipeline.add_stage(
            stage_name="Source",
            actions=[
                codepipeline_actions.CodeCommitSourceAction(
                    action_name="Source",
                    repository=self.source_repo,
                    output=source_output,
                    branch=source_branch,
                    trigger=codepipeline_actions.CodeCommitTrigger.EVENTS,
                )
            ],
        )

        build_output = codepipeline.Artifact(f"{resource_name}-build")
        self.pipeline.add_stage(
            stage_name="Build",
            actions=[
                codepipeline_actions.CodeBuildAction(
                    action_name="Build",
                    project=self.build_project,
                    input=source_output,
                    outputs=[build_output],
                )
            ],
        )

        self.pipeline.add_stage(
            stage_name="Deploy",
            actions=[
                codepipeline_actions.EcsDeployAction(
                    action_name="Deploy",
                    service=self.service.service,
                    image_file=build_output.at_path(IMAGE_DEFINITIONS_FILE),
                )
            ],
        )

        # ========================================
        # OUTPUTS
        # ========================================

        CfnOutput(self, "ECRRepository",
            value=self.ecr_repo.repository_uri,
            description="ECR repository URI for the service image"
        )

        CfnOutput(self, "CodeCommitCloneUrl",
            value=self.source_repo.repository_clone_url_http,
            description="Push here to trigger the pipeline"
        )

        CfnOutput(self, "ClusterName",
            value=self.cluster.cluster_name,
            description="ECS cluster running the service"
        )

        CfnOutput(self, "PipelineName",
            value=self.pipeline.pipeline_name,
            description="CodePipeline name"
        )
