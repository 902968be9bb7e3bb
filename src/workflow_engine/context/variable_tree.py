"""Turn an example context object into a tree of VariableItem entries."""

from __future__ import annotations

from typing import Any, Dict, List

from workflow_engine.models import VariableItem

MAX_ARRAY_SAMPLES = 5


def build_variable_tree(obj: Dict[str, Any], parent_path: str = "") -> List[VariableItem]:
    """
    Build a variable tree from a context object.

    Nested objects become ``object`` items with children; arrays show their
    first few elements as ``[i]`` children.
    """
    items: List[VariableItem] = []

    for key, value in obj.items():
        path = f"{parent_path}.{key}" if parent_path else key

        if isinstance(value, list):
            children = []
            for index, element in enumerate(value[:MAX_ARRAY_SAMPLES]):
                child_path = f"{path}.{index}"
                if isinstance(element, dict):
                    children.append(
                        VariableItem(
                            name=child_path,
                            label=f"[{index}]",
                            type="object",
                            sample_value=element,
                            children=build_variable_tree(element, child_path) or None,
                        )
                    )
                else:
                    children.append(
                        VariableItem(
                            name=child_path,
                            label=f"[{index}]",
                            type="primitive",
                            sample_value=element,
                        )
                    )
            items.append(
                VariableItem(
                    name=path,
                    label=key,
                    type="array",
                    sample_value=value,
                    children=children or None,
                )
            )
        elif isinstance(value, dict):
            items.append(
                VariableItem(
                    name=path,
                    label=key,
                    type="object",
                    sample_value=value,
                    children=build_variable_tree(value, path) or None,
                )
            )
        else:
            items.append(
                VariableItem(name=path, label=key, type="primitive", sample_value=value)
            )

    return items


def flatten_variable_tree(items: List[VariableItem]) -> List[str]:
    """All dot paths in a tree, depth first."""
    paths: List[str] = []
    for item in items:
        paths.append(item.name)
        if item.children:
            paths.extend(flatten_variable_tree(item.children))
    return paths
