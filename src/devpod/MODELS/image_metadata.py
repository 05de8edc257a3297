"""
Models for image-level defaults and the command line derived from them.
"""
from typing import List
from pydantic import BaseModel


class ImageMetadata(BaseModel):
    """
    The runtime defaults an image declares in its config blob.
    Empty when the image could not be inspected.
    """
    entrypoint: List[str] = []
    cmd: List[str] = []
    working_dir: str = ""


class DerivedCommand(BaseModel):
    """
    The command a container would have run, plus a record of where each part came from.
    """
    line: List[str] = []
    comments: List[str] = []
