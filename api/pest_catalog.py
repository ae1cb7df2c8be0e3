# api/pest_catalog.py
# Target pests the vision prompt asks about, keyed for lookup by common name

TARGET_PESTS = [
    {
        'name': 'Beet Armyworm',
        'scientific_name': 'Spodoptera exigua',
        'description': 'Primary target - eggs and egg clusters on onion leaves',
    },
    {
        'name': 'Fall Armyworm',
        'scientific_name': 'Spodoptera frugiperda',
        'description': 'Major agricultural pest affecting corn and other crops',
    },
    {
        'name': 'African Armyworm',
        'scientific_name': 'Spodoptera exempta',
        'description': 'Migratory pest affecting cereals and grasses',
    },
    {
        'name': 'Maize Stalk Borer',
        'scientific_name': 'Busseola fusca',
        'description': 'Stem borer affecting maize and sorghum',
    },
    {
        'name': 'Rice Stem Borer',
        'scientific_name': 'Scirpophaga incertulas',
        'description': 'Major rice pest in tropical regions',
    },
    {
        'name': 'Brown Planthopper',
        'scientific_name': 'Nilaparvata lugens',
        'description': 'Sap-sucking pest of rice',
    },
    {
        'name': 'Leaf Folder',
        'scientific_name': 'Cnaphalocrocis medinalis',
        'description': 'Foliar pest of rice',
    },
]

# Alternate spellings farmers and the model use
PEST_ALIASES = {
    'stem borer': 'Rice Stem Borer',
    'stem-borer': 'Rice Stem Borer',
    'stemborer': 'Rice Stem Borer',
    'armyworm': 'Fall Armyworm',
    'army worm': 'Fall Armyworm',
    'onion armyworm': 'Beet Armyworm',
    'rice leaf folder': 'Leaf Folder',
    'leaffolder': 'Leaf Folder',
    'leaf-folder': 'Leaf Folder',
    'planthopper': 'Brown Planthopper',
    'corn borer': 'Maize Stalk Borer',
    'stalk borer': 'Maize Stalk Borer',
}

_BY_NAME = {pest['name'].lower(): pest for pest in TARGET_PESTS}
_BY_SCIENTIFIC_NAME = {pest['scientific_name'].lower(): pest for pest in TARGET_PESTS}


def lookup_pest(name):
    """
    Find a catalog entry by common name, alias or scientific name.

    Returns None for unknown pests.
    """
    if not name:
        return None

    normalized = name.lower().strip()
    if normalized in _BY_NAME:
        return _BY_NAME[normalized]
    if normalized in _BY_SCIENTIFIC_NAME:
        return _BY_SCIENTIFIC_NAME[normalized]

    alias = PEST_ALIASES.get(normalized)
    if alias:
        return _BY_NAME[alias.lower()]
    return None


def prompt_pest_list():
    """Numbered pest list for the vision prompt."""
    return '\n'.join(
        f"{index}. {pest['name']} ({pest['scientific_name']}) - {pest['description']}"
        for index, pest in enumerate(TARGET_PESTS, start=1)
    )
