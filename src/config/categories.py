# src/config/categories.py

"""Category taxonomy of the Nota Paraná price API.

The API files every product under one integer category, and a barcode
search scoped to the wrong category returns nothing.  The sync job
therefore walks an ordered list of categories and stops at the first
one that yields offers, so the order below matters: the most common
supermarket categories come first.
"""

import re

BARCODE_RE = re.compile(r"^\d{8,14}$")  # EAN-8, UPC-A, EAN-13, ITF-14

ALL_CATEGORIES: dict[int, str] = {
    0: "Não catalogado",
    1: "Carnes e peixes",
    2: "Leite e derivados",
    3: "Plantas e flores",
    4: "Hortifruti",
    5: "Cafés e chás",
    6: "Cereais",
    7: "Farinhas",
    8: "Produtos de origem vegetal",
    9: "Ceras e gorduras",
    10: "Preparação de carnes e peixes",
    11: "Confeitaria e panificadora",
    12: "Conservas, extratos, geléias e sucos",
    13: "Preparos alimentícios",
    14: "Alimentos para animais",
    15: "Tabacaria",
    16: "Derivados minerais",
    17: "Combustíveis",
    18: "Produtos químicos",
    19: "Medicamentos",
    20: "Corantes, tintas e vernizes",
    21: "Perfumaria e Beleza",
    22: "Produtos de limpeza, ceras e pastas",
    23: "Colas",
    24: "Explosivos e fogos de artifícios",
    26: "Plásticos",
    27: "Borrachas",
    28: "Couros e peles",
    29: "Madeira",
    30: "Cestaria e palhas",
    31: "Celulose",
    32: "Papéis",
    33: "Livros, revistas, jornais e outros",
    34: "Tecidos",
    36: "Vestuário",
    37: "Calçados",
    38: "Utensílios",
    39: "Pedras e cerâmicas",
    40: "Metais",
    41: "Metais preciosos e bijuterias",
    42: "Ferramentas",
    43: "Máquinas, aparelhos e materiais elétricos",
    44: "Automóveis e acessórios",
    47: "Brinquedos",
    48: "Produtos ópticos",
    52: "Artigos mobiliários",
    53: "Outros produtos não categorizados",
    54: "Massas",
    55: "Bebidas",
    56: "Material escolar e escritório",
    58: "Carne bovina",
    59: "Carne suína",
    61: "Peixes e crustáceos, moluscos e outros",
    62: "Higiene e limpeza",
    63: "Chocolates / Alimentos e bebidas",
}

# Default search order for the sync job (groceries)
FOOD_SEARCH_CATEGORIES: list[int] = [
    55, 63,                 # beverages, chocolates
    1, 58, 59, 61, 10,      # meat and fish
    2, 4, 5, 6,             # staples
    7, 9, 11, 12, 13, 54,   # prepared goods, pasta
    8, 14, 0,               # other, uncatalogued last
]

NON_FOOD_SEARCH_CATEGORIES: list[int] = [
    21, 22, 62, 19,         # hygiene and beauty
    38, 40, 27, 30,         # household
    36, 37, 34, 28, 41, 48, # apparel and accessories
    43, 42,                 # electronics and tools
    26, 29, 31, 32, 39,     # materials
    15, 16, 17, 18, 20, 23, 24, 44, 47, 52, 56, 33, 53,
]

FULL_SEARCH_CATEGORIES: list[int] = (
    FOOD_SEARCH_CATEGORIES + NON_FOOD_SEARCH_CATEGORIES
)

_CATEGORY_SETS: dict[str, list[int]] = {
    "food": FOOD_SEARCH_CATEGORIES,
    "non_food": NON_FOOD_SEARCH_CATEGORIES,
    "full": FULL_SEARCH_CATEGORIES,
}

FOOD_KEYWORDS: frozenset[str] = frozenset({
    "carne", "frango", "peixe", "linguiça", "linguica", "salsicha",
    "hamburguer", "picanha", "bacon", "presunto", "mortadela", "salame",
    "leite", "queijo", "iogurte", "manteiga", "margarina", "requeijão",
    "requeijao", "banana", "laranja", "tomate", "cebola", "batata",
    "coca", "guaraná", "guarana", "água", "agua", "suco", "refrigerante",
    "cerveja", "vinho", "macarrão", "macarrao", "massa", "arroz",
    "feijão", "feijao", "aveia", "molho", "tempero", "açucar", "acucar",
    "óleo", "oleo", "azeite", "ketchup", "maionese", "chocolate",
    "achocolatado", "biscoito", "bolacha", "café", "cafe", "chá",
    "geleia", "pão", "pao",
})


def search_categories_for_set(name: str) -> list[int]:
    """Return the ordered category list for a named set.

    Raises ``ValueError`` for unknown set names.
    """
    try:
        return list(_CATEGORY_SETS[name])
    except KeyError:
        valid = ", ".join(sorted(_CATEGORY_SETS))
        raise ValueError(
            f"Unknown category set '{name}' (expected one of: {valid})"
        ) from None


def looks_like_food(term: str) -> bool:
    """Guess whether a search term names a food product.

    Barcodes carry no such hint, so they default to food, which is
    the common case for a grocery catalogue.
    """
    lowered = term.lower().strip()
    if BARCODE_RE.match(lowered):
        return True
    return any(word in lowered for word in FOOD_KEYWORDS)


def categories_for_term(term: str) -> list[int]:
    """Pick the food or non-food search order for *term*."""
    if looks_like_food(term):
        return list(FOOD_SEARCH_CATEGORIES)
    return list(NON_FOOD_SEARCH_CATEGORIES)


def category_label(category: int) -> str:
    """Human-readable label for a category id."""
    return ALL_CATEGORIES.get(category, f"Categoria {category}")
