"""Naming helpers shared by the pipeline stages.

CONVENTION: unit names are kebab-case (``product-list``), class and model
names PascalCase (``ProductList``), members camelCase.
"""

import re

_WORD_PATTERN = re.compile(r'[A-Z]+(?=[A-Z][a-z0-9])|[A-Z]?[a-z0-9]+|[A-Z]+')

# Irregular plurals worth special-casing for REST paths
_IRREGULAR_PLURALS = {
    'person': 'people',
    'child': 'children',
    'man': 'men',
    'woman': 'women',
}
_IRREGULAR_SINGULARS = {plural: singular for singular, plural in _IRREGULAR_PLURALS.items()}


def split_words(name: str) -> list:
    """Split camelCase, PascalCase, snake_case, kebab-case and spaced names."""
    words = []
    for chunk in re.split(r'[^A-Za-z0-9]+', name or ''):
        words.extend(_WORD_PATTERN.findall(chunk))
    return [w.lower() for w in words if w]


def to_kebab_case(name: str) -> str:
    """'Product List' / 'productList' -> 'product-list'."""
    return '-'.join(split_words(name))


def to_pascal_case(name: str) -> str:
    """'product-list' -> 'ProductList'."""
    return ''.join(w.capitalize() for w in split_words(name))


def to_camel_case(name: str) -> str:
    """'product-list' -> 'productList'."""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def to_snake_case(name: str) -> str:
    """'ProductList' -> 'product_list'."""
    return '_'.join(split_words(name))


def pluralize(word: str) -> str:
    """Naive English pluralization used for REST collection paths."""
    if not word:
        return word
    lower = word.lower()
    if lower in _IRREGULAR_PLURALS:
        return _IRREGULAR_PLURALS[lower]
    if re.search(r'[^aeiou]y$', lower):
        return word[:-1] + 'ies'
    if re.search(r'(s|x|z|ch|sh)$', lower):
        return word + 'es'
    return word + 's'


def singularize(word: str) -> str:
    """Inverse of ``pluralize`` for the common cases."""
    if not word:
        return word
    lower = word.lower()
    if lower in _IRREGULAR_SINGULARS:
        return _IRREGULAR_SINGULARS[lower]
    if lower.endswith('ies') and len(word) > 3:
        return word[:-3] + 'y'
    if re.search(r'(ss|x|z|ch|sh)es$', lower):
        return word[:-2]
    if lower.endswith('s') and not lower.endswith(('ss', 'us', 'is')) and len(word) > 1:
        return word[:-1]
    return word


def sanitize_project_name(name: str) -> str:
    """Lowercase, underscores for spaces, only [a-z0-9_], no leading digit.

    'My Shop 2' -> 'my_shop_2'; '1st app' -> 'app_1st_app'
    """
    sanitized = re.sub(r'\s+', '_', (name or '').strip().lower())
    sanitized = re.sub(r'[^a-z0-9_]', '', sanitized)
    sanitized = re.sub(r'^[0-9]', lambda m: f"app_{m.group(0)}", sanitized)
    return sanitized or 'app'


def archive_file_name(name: str) -> str:
    """File name offered for download: 'My Shop' -> 'my-shop.zip'."""
    safe = re.sub(r'\s+', '-', (name or '').strip())
    safe = re.sub(r'[^a-zA-Z0-9\-_]', '', safe).lower()
    return f"{safe or 'project'}.zip"
