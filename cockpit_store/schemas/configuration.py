"""
Pydantic Schemas for raw product configurations

The wire shape a storefront submits when pricing or adding a product:

    {
        "variations": {"<group_id>": <option_id | true/false | "text">},
        "addons": [{"addon_id": 1, "option_id": 2}],
        "bundle_items": {
            "selected_optional": [<bundle_item_id>, ...],
            "configurations": {"<bundle_item_id>": {"<group_id>": <value>}}
        }
    }

Unrecognised top-level keys are dropped. Nothing deeper than these maps is
interpreted.
"""
from typing import Optional, List, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

# Order matters: bool before int so True stays a bool
SelectionValue = Optional[Union[StrictBool, StrictInt, str]]


class AddOnChoice(BaseModel):
    """One selected add-on, with its option for multi-option add-ons."""
    addon_id: int = Field(..., gt=0)
    option_id: Optional[int] = Field(None, gt=0)


class BundleItemsInput(BaseModel):
    """Optional bundle items opted into, and nested selections per item."""
    model_config = ConfigDict(extra="ignore")

    selected_optional: List[int] = Field(default_factory=list)
    configurations: Dict[int, Dict[int, SelectionValue]] = Field(default_factory=dict)


class RawConfiguration(BaseModel):
    """Untrusted configuration as submitted by the client."""
    model_config = ConfigDict(extra="ignore")

    variations: Dict[int, SelectionValue] = Field(default_factory=dict)
    addons: List[AddOnChoice] = Field(default_factory=list)
    bundle_items: BundleItemsInput = Field(default_factory=BundleItemsInput)
