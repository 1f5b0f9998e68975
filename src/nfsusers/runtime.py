"""Controller-facing provisioner combining provisioning and deletion."""

from nfsusers.archive import ArchiveExtractor, Chown
from nfsusers.config import ProvisionerConfig, get_config
from nfsusers.deprovisioner import Deprovisioner
from nfsusers.identity import IdentityResolver
from nfsusers.models import DeleteRequest, ProvisionRequest, VolumeDescriptor
from nfsusers.provisioner import ProvisioningWorkflow


class NFSUsersProvisioner:
    """Provision/Delete pair invoked by the external claim controller.

    Holds no state between calls besides the immutable configuration.
    """

    def __init__(
        self,
        config: ProvisionerConfig | None = None,
        *,
        resolver: IdentityResolver | None = None,
        extractor: ArchiveExtractor | None = None,
        chown: Chown | None = None,
    ) -> None:
        self._config = config or get_config()
        self.workflow = ProvisioningWorkflow(
            self._config, resolver=resolver, extractor=extractor, chown=chown
        )
        self.deprovisioner = Deprovisioner(self._config)

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> ProvisionerConfig:
        return self._config

    def provision(self, request: ProvisionRequest) -> VolumeDescriptor:
        return self.workflow.provision(request)

    def delete(self, request: DeleteRequest) -> None:
        self.deprovisioner.delete(request.descriptor)


__all__ = [
    "NFSUsersProvisioner",
    "ProvisioningWorkflow",
    "Deprovisioner",
    "IdentityResolver",
    "ArchiveExtractor",
]
