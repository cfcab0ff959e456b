from uuid import uuid4

import shortuuid


def generate_shortuuid() -> str:
    return shortuuid.uuid()


def generate_uuid() -> str:
    return str(uuid4())
