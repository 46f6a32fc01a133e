"""
Replicator configuration.

Loads settings from environment variables (and an optional `.env` file)
using pydantic-settings. CLI flags override these values per run.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReplicatorConfig(BaseSettings):
    """
    Settings shared by every replication command.
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: str = Field(default="", description="Optional YAML dictConfig path")

    # Cross-account access
    SOURCE_ROLE_NAME: str = Field(
        default="CrossAccountAccessRole", description="Role assumed in the source account"
    )
    ROLE_SESSION_NAME: str = Field(
        default="LambdaReplicationSession", description="STS session name for assumed roles"
    )

    # API Gateway trigger replication
    API_STAGE_NAME: str = Field(default="prod", description="Stage deployed at the destination")
    PERMISSION_MODE: Literal["accumulate", "reconcile"] = Field(
        default="accumulate",
        description="How invoke-permission statement ids are minted",
    )
    RESUME: bool = Field(
        default=False, description="Skip methods already bound on destination resources"
    )

    # IAM eventual consistency
    ROLE_CREATE_WAIT_SECONDS: int = Field(
        default=10, description="Wait after creating an execution role (seconds)"
    )
    IAM_PROPAGATION_WAIT_SECONDS: int = Field(
        default=15, description="Wait after attaching role policies (seconds)"
    )

    CODE_DOWNLOAD_TIMEOUT: float = Field(
        default=60.0, description="Function code package download timeout (seconds)"
    )

    # RDS snapshot replication
    RDS_REGION: str = Field(default="us-east-1", description="Region for snapshot copy/restore")
    RDS_KMS_KEY_ID: str = Field(default="alias/aws/rds", description="KMS key for snapshot copy")
    SNAPSHOT_COPY_SUFFIX: str = Field(
        default="-destination", description="Suffix appended to copied snapshot names"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


config = ReplicatorConfig()
