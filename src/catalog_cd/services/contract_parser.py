"""Decode a release contract into ContractEntry rows.

This is the only place that knows the contract schema.
"""

import yaml
from pydantic import ValidationError

from catalog_cd.errors import FormatError
from catalog_cd.models.contract import Contract, ContractEntry, ContractResource
from catalog_cd.services.config_loader import format_validation_error


def parse_contract(data: bytes, default_type: str | None = None) -> list[ContractEntry]:
    """Parse contract bytes.

    default_type is used for flat-list entries that don't declare a type.
    Raises FormatError when the document can't be decoded or an entry
    misses a required field.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise FormatError(f"Invalid YAML in contract: {e}")
    if not isinstance(raw, dict):
        raise FormatError("Contract must be a mapping with a 'catalog' key")

    try:
        contract = Contract.model_validate(raw)
    except ValidationError as e:
        raise FormatError(f"Contract validation error: {format_validation_error(e)}")

    resources = contract.catalog.resources
    rows: list[tuple[str | None, ContractResource]] = []
    if isinstance(resources, dict):
        for resource_type, items in resources.items():
            for item in items:
                if item.resource_type and item.resource_type != resource_type:
                    raise FormatError(
                        f"Contract entry '{item.name}' declares type '{item.resource_type}' "
                        f"but is listed under '{resource_type}'"
                    )
                rows.append((resource_type, item))
    else:
        rows.extend((item.resource_type, item) for item in resources)

    entries = []
    for resource_type, item in rows:
        resource_type = resource_type or item.resource_type or default_type
        if not resource_type:
            raise FormatError(f"Contract entry '{item.name}' has no resource type")
        try:
            entries.append(ContractEntry(
                resource_type=resource_type,
                name=item.name,
                version=item.version,
                checksum=item.checksum,
                relative_path=item.filename,
                signature=item.signature,
            ))
        except ValidationError as e:
            raise FormatError(
                f"Invalid contract entry '{item.name}': {format_validation_error(e)}"
            )
    return entries
