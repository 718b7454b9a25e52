"""Pull recipe fields out of free-form assistant text.

The assistant is prompted to answer in a fixed layout::

    Name: Tomato Soup
    Description: A quick weeknight soup.
    Preparation Time: 10 minutes
    Cook Time: 25 minutes
    Ingredients:
    - 4 tomatoes
    - 1 onion

    Instructions:
    1. Chop everything.
    2. Simmer.

Labels are matched case-insensitively and must come in that order: the
ingredients block is cut off at the instructions label. Anything missing
comes back empty, never as an error.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from . import schemas

NAME = "name:"
DESCRIPTION = "description:"
PREP_TIME = "preparation time:"
COOK_TIME = "cook time:"
INGREDIENTS = "ingredients:"
INSTRUCTIONS = "instructions:"

ITEM_MARKER = "- "


@dataclass
class ExtractedRecipe:
    name: str = ""
    description: str = ""
    prep_time: str = ""
    cook_time: str = ""
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)

    def to_create(self, message_id: Optional[str] = None) -> schemas.RecipeCreate:
        return schemas.RecipeCreate(
            name=self.name,
            description=self.description,
            prep_time=self.prep_time,
            cook_time=self.cook_time,
            ingredients=self.ingredients,
            instructions=self.instructions,
            message_id=message_id,
        )


def _value_start(idx: int, label: str) -> int:
    # skip the label and the single space or newline after its colon
    return idx + len(label) + 1


def _labelled(
    content: str, lowered: str, label: str, terminator: str = "\n", start: int = 0
) -> Tuple[str, int]:
    idx = lowered.find(label, max(start, 0))
    if idx == -1:
        return "", idx
    end = content.find(terminator, idx)
    if end == -1:
        return "", idx
    return content[_value_start(idx, label):end], idx


def strip_marker(line: str) -> str:
    if line.startswith(ITEM_MARKER):
        return line[len(ITEM_MARKER):]
    return line


def split_items(block: str) -> List[str]:
    """One entry per non-empty line, list markers removed."""
    items = (strip_marker(line) for line in block.splitlines())
    return [item for item in items if item]


def extract_fields(content: str) -> dict:
    """Raw string fields, before the multi-line blocks are split."""
    lowered = content.lower()

    name, name_idx = _labelled(content, lowered, NAME)
    description, _ = _labelled(content, lowered, DESCRIPTION, start=name_idx)
    prep_time, _ = _labelled(content, lowered, PREP_TIME)
    cook_time, _ = _labelled(content, lowered, COOK_TIME)
    instructions, instructions_idx = _labelled(
        content, lowered, INSTRUCTIONS, terminator="\n\n"
    )

    ingredients = ""
    ingredients_idx = lowered.find(INGREDIENTS)
    if ingredients_idx != -1 and instructions_idx != -1:
        # the block ends at the blank line before the instructions label
        end = max(instructions_idx - 2, 0)
        ingredients = content[_value_start(ingredients_idx, INGREDIENTS):end]

    return {
        "name": name,
        "description": description,
        "prep_time": prep_time,
        "cook_time": cook_time,
        "ingredients": ingredients,
        "instructions": instructions,
    }


def extract_recipe(content: str) -> ExtractedRecipe:
    fields = extract_fields(content)
    return ExtractedRecipe(
        name=fields["name"],
        description=fields["description"],
        prep_time=fields["prep_time"],
        cook_time=fields["cook_time"],
        ingredients=split_items(fields["ingredients"]),
        instructions=split_items(fields["instructions"]),
    )
