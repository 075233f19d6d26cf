"""
Design tokens for Chrona.

Tokens are a flat mapping from a name to either a hex color (a primitive,
e.g. "coral": "#F7AD97") or the name of another token (a semantic color,
e.g. "brand-primary": "coral"). References are one level deep.

The token file is the source of truth; DEFAULT_TOKENS is only used when the
file doesn't exist yet.
"""

import logging
import re
from pathlib import Path


logger = logging.getLogger(__name__)


DEFAULT_TOKENS = {
    # Primitive colors - gray scale
    'gray-100': '#141414',
    'gray-200': '#1f1f1f',
    'gray-300': '#2a2a2a',
    'gray-400': '#333333',
    'gray-500': '#4d4d4d',
    'gray-600': '#808080',
    'gray-700': '#b3b3b3',
    'gray-800': '#f2f2f2',
    # Palette colors
    'steel': '#577E89',
    'sea-glass': '#5B95A5',
    'sage': '#6F9F9C',
    'sand': '#DEC484',
    'marigold': '#E1A36F',
    'coral': '#F7AD97',
    'brick': '#C75B5B',
    'ocean': '#5B95B5',
    'iris': '#6B6FAE',
    'moss': '#3F6B57',
    # Semantic colors (reference primitives)
    'brand-primary': 'coral',
    'primary': 'gray-100',
    'secondary': 'gray-500',
    'tertiary': 'gray-300',
    'accent': 'sea-glass',
    'accent-2': 'sage',
    'accent-3': 'sand',
    'accent-4': 'coral',
    'button-primary': 'gray-300',
    'background-body': 'gray-100',
    'background-shells': 'gray-200',
    'background-components': 'gray-300',
    'background-footer': 'gray-200',
    'background-white': 'gray-800',
}

# Keys from older theme versions, dropped whenever tokens are applied
DEPRECATED_KEYS = [
    'background-primary',
    'background-secondary',
    'background-tertiary',
    'ocean-1',
    'gray-900',
]

# Files searched when a token is renamed
SOURCE_SUFFIXES = ['.css', '.ts', '.tsx']

HEX_PATTERN = re.compile(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')


# ============================================================
# READING TOKENS
# ============================================================

def load_tokens(repo) -> dict:
    """Load the token file, or the defaults if there is none."""
    tokens = repo.load_tokens()
    if tokens is None:
        logger.info("No design token file at %s, using defaults", repo.tokens_path)
        return dict(DEFAULT_TOKENS)
    return tokens


def is_primitive(value) -> bool:
    """True for literal colors ("#..."), False for references."""
    return isinstance(value, str) and value.startswith('#')


def resolve_token(tokens: dict, name: str) -> str:
    """
    Get the color a token stands for.

    A hex literal is returned as-is; a token name is looked up once. Anything
    that can't be resolved is returned unchanged.
    """
    if is_primitive(name):
        return name
    value = tokens.get(name, name)
    if is_primitive(value):
        return value
    # One level of indirection: a semantic token pointing at a primitive
    return tokens.get(value, value)


def resolve_all(tokens: dict) -> dict:
    """Every token resolved to its color."""
    return {name: resolve_token(tokens, name) for name in tokens}


def semantic_keys(tokens: dict) -> list:
    """Tokens whose value references another token."""
    return [name for name, value in tokens.items() if not is_primitive(value)]


def palette_colors(tokens: dict) -> list:
    """Primitive colors usable for labels (everything but the gray scale)."""
    return [name for name, value in tokens.items()
            if is_primitive(value) and not name.startswith('gray-')]


def validate_tokens(tokens) -> list:
    """
    Find problems in a token mapping.

    Returns:
        List of error messages (empty when the tokens are fine)
    """
    if not isinstance(tokens, dict):
        return ["tokens must be an object"]

    errors = []
    for name, value in tokens.items():
        if not isinstance(value, str):
            errors.append(f"{name}: value must be a string")
        elif is_primitive(value):
            if not HEX_PATTERN.match(value):
                errors.append(f"{name}: invalid hex color {value}")
        elif value not in tokens:
            errors.append(f"{name}: references unknown token {value}")
    return errors


# ============================================================
# CHANGING TOKENS
# ============================================================

def rename_token(tokens: dict, old_key: str, new_key: str) -> dict:
    """
    Rename a token and update every token that references it.

    Renaming to the same name or renaming a missing token does nothing.

    Returns:
        A new token mapping
    """
    if old_key == new_key or old_key not in tokens:
        return dict(tokens)

    updated = {}
    for name, value in tokens.items():
        key = new_key if name == old_key else name
        if value == old_key and not is_primitive(value):
            value = new_key
        updated[key] = value
    return updated


def apply_renames(tokens: dict, renames: list) -> dict:
    """
    Apply a list of renames in order.

    Args:
        renames: List of {'from': old, 'to': new} dicts (or (old, new) pairs)
    """
    for old_key, new_key in _rename_pairs(renames):
        tokens = rename_token(tokens, old_key, new_key)
    return tokens


def clean_tokens(tokens: dict) -> dict:
    """Drop deprecated keys before tokens are saved."""
    return {name: value for name, value in tokens.items() if name not in DEPRECATED_KEYS}


def _rename_pairs(renames) -> list:
    """
    Read renames as (old, new) pairs.

    Raises:
        ValueError: unless renames is a list of {'from', 'to'} dicts or
            two-item lists/tuples of token names
    """
    if not renames:
        return []
    if not isinstance(renames, (list, tuple)):
        raise ValueError("renames must be a list of {from, to} objects")

    pairs = []
    for item in renames:
        if isinstance(item, dict):
            old_key, new_key = item.get('from'), item.get('to')
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            old_key, new_key = item
        else:
            raise ValueError(f"Invalid rename: {item!r}")
        if not isinstance(old_key, str) or not isinstance(new_key, str):
            raise ValueError(f"Invalid rename: {item!r}")
        if old_key and new_key and old_key != new_key:
            pairs.append((old_key, new_key))
    return pairs


def rewrite_sources(source_dir: Path, renames) -> list:
    """
    Replace CSS custom property references to renamed tokens in source files.

    Best effort: files that can't be read or written are logged and skipped.

    Args:
        source_dir: Folder searched recursively
        renames: Same format as apply_renames

    Returns:
        List of files that were changed
    """
    pairs = _rename_pairs(renames)
    source_dir = Path(source_dir)
    if not pairs or not source_dir.is_dir():
        return []

    patterns = [
        (re.compile(r'--' + re.escape(old_key) + r'(?![\w-])'), '--' + new_key)
        for old_key, new_key in pairs
    ]

    changed = []
    for path in sorted(source_dir.rglob('*')):
        if path.suffix not in SOURCE_SUFFIXES or not path.is_file():
            continue
        try:
            text = path.read_text(encoding='utf-8')
            new_text = text
            for pattern, replacement in patterns:
                new_text = pattern.sub(replacement, new_text)
            if new_text != text:
                path.write_text(new_text, encoding='utf-8')
                changed.append(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipped %s while renaming tokens: %s", path, e)

    if changed:
        logger.info("Rewrote token references in %d file(s)", len(changed))
    return changed


def save_tokens(repo, tokens: dict, renames=None, source_dir: Path = None) -> dict:
    """
    Apply renames, drop deprecated keys and write the token file.

    Returns:
        The tokens as saved
    """
    tokens = clean_tokens(apply_renames(dict(tokens), renames))
    repo.save_tokens(tokens)
    if renames and source_dir:
        rewrite_sources(source_dir, renames)
    return tokens
