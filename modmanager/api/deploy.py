from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from modmanager.core.dependencies import get_synchronizer
from modmanager.core.errors import DeploymentError
from modmanager.domain.models import DeploymentReport
from modmanager.services.deployment.profile_manifest import read_disabled_mod_names
from modmanager.services.deployment.synchronizer import DeploymentSynchronizer

logger = logging.getLogger(__name__)
router = APIRouter()

# Deployments mutate the target tree in order; only one runs at a time.
_deploy_lock = asyncio.Lock()


class DeployRequest(BaseModel):
    """
    Request model for deploying a profile into a game directory.

    When `disabled_names` is omitted, disabled mods are read from the
    profile's mods.yml.
    """

    profile_dir: str = Field(description="Path of the profile directory (the source of truth).")
    target_dir: str = Field(description="Path of the game installation to deploy into.")
    disabled_names: Optional[List[str]] = Field(
        default=None,
        description="Name fragments of mods to exclude from the deployment.",
    )


@router.post("/deploy")
async def deploy_profile(
    body: DeployRequest,
    synchronizer: DeploymentSynchronizer = Depends(get_synchronizer),
) -> DeploymentReport:
    profile_dir = Path(body.profile_dir).expanduser()
    target_dir = Path(body.target_dir).expanduser()

    def run() -> DeploymentReport:
        disabled_names = body.disabled_names
        if disabled_names is None:
            disabled_names = read_disabled_mod_names(profile_dir)
        return synchronizer.deploy(profile_dir, target_dir, disabled_names)

    async with _deploy_lock:
        try:
            return await asyncio.to_thread(run)
        except DeploymentError as e:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "step": e.step.value,
                    "error": e.reason,
                    "report": e.report.model_dump(mode="json") if e.report else None,
                },
            )
