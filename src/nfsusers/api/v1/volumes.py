"""Volume API endpoints.

Handlers are plain functions: each call runs to completion on one worker
thread, the same way an in-process controller would call the provisioner.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from nfsusers.api.dependencies import get_provisioner
from nfsusers.models import DeleteRequest, ProvisionRequest, VolumeDescriptor
from nfsusers.runtime import NFSUsersProvisioner

router = APIRouter(prefix="/volumes", tags=["volumes"])


class DeleteResponse(BaseModel):
    status: str
    name: str


@router.post("", status_code=201, response_model=VolumeDescriptor)
def provision_volume(
    request: ProvisionRequest,
    provisioner: NFSUsersProvisioner = Depends(get_provisioner),
) -> VolumeDescriptor:
    """Provision (or reuse) the backing directory for a claim."""
    return provisioner.provision(request)


@router.post("/delete", response_model=DeleteResponse)
def delete_volume(
    request: DeleteRequest,
    provisioner: NFSUsersProvisioner = Depends(get_provisioner),
) -> DeleteResponse:
    """Apply the configured delete policy to a provisioned volume."""
    provisioner.delete(request)
    return DeleteResponse(status="deleted", name=request.descriptor.name)
