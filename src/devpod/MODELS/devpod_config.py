"""
Resolved settings for a single devpod run.
"""
from typing import Optional
from pydantic import BaseModel

DEFAULT_IMAGE_TRANSPORT = "docker://"


class DevpodConfig(BaseModel):
    """
    Options collected from the command line, DEVPOD_* environment variables
    and a local .env file.
    """
    namespace: Optional[str] = None
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    image_transport: str = DEFAULT_IMAGE_TRANSPORT
    force: bool = False
    strict_images: bool = False
    dry_run: bool = False
    verbose: bool = False
