import pytest

from src.core.suggestions import extract_suggestions, parse_price, strip_suggestion_blocks

TWO_BLOCKS = """
Te recomiendo estos módulos:

[MODULO_SUGERIDO]
nombre: "Chat en vivo"
precio: "RD$ 6,500"
descripcion: "Widget de chat con historial"
categoria: "Integration"
horas: "12"
[/MODULO_SUGERIDO]

[MODULO_SUGERIDO]
nombre: "Blog"
precio: "4500"
descripcion: "Sección de artículos"
[/MODULO_SUGERIDO]
"""


def test_two_blocks_give_two_suggestions_with_int_price():
    out = extract_suggestions(TWO_BLOCKS)
    assert [s.name for s in out] == ["Chat en vivo", "Blog"]
    assert out[0].price == 6500 and isinstance(out[0].price, int)
    assert out[0].category == "Integration"
    assert out[0].estimated_hours == 12.0
    assert out[1].category is None


def test_block_without_price_is_skipped():
    text = '[MODULO_SUGERIDO]\nnombre: "Sin precio"\ndescripcion: "x"\n[/MODULO_SUGERIDO]'
    assert extract_suggestions(text) == []


def test_block_without_name_is_skipped_but_others_survive():
    text = (
        '[MODULO_SUGERIDO]\nprecio: "100"\n[/MODULO_SUGERIDO]\n'
        '[MODULO_SUGERIDO]\nnombre: "SEO"\nprecio: "3000"\n[/MODULO_SUGERIDO]'
    )
    assert [s.name for s in extract_suggestions(text)] == ["SEO"]


def test_unquoted_values_and_accented_keys():
    text = "[MODULO_SUGERIDO]\nnombre: Tienda\nprecio: 12.000\ndescripción: Carrito\n[/MODULO_SUGERIDO]"
    (s,) = extract_suggestions(text)
    assert (s.name, s.price, s.description) == ("Tienda", 12000, "Carrito")


def test_duplicates_are_collapsed():
    block = '[MODULO_SUGERIDO]\nnombre: "Blog"\nprecio: "4500"\n[/MODULO_SUGERIDO]\n'
    assert len(extract_suggestions(block * 3)) == 1


def test_legacy_html_buttons():
    text = (
        '<div class="module-suggestion" data-name="Chat" data-price="110" data-category="Integration"></div>'
        '<button class="add-module-btn" data-name="Newsletter" data-price="RD$ 2,000" '
        'data-description="Correo mensual">Agregar</button>'
    )
    out = extract_suggestions(text, usd_rate=60.0)
    assert [(s.name, s.price) for s in out] == [("Chat", 6600), ("Newsletter", 2000)]


@pytest.mark.parametrize("garbage", [None, "", "no hay bloques", "[MODULO_SUGERIDO] sin cierre", 42])
def test_garbage_never_raises(garbage):
    assert extract_suggestions(garbage) == []


@pytest.mark.parametrize("raw,expected", [
    ("RD$ 3,500", 3500),
    ("3.500", 3500),
    ("1,250,000", 1250000),
    ("4500.75", 4501),
    ("-200", None),
    ("gratis", None),
    ("", None),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


def test_strip_blocks_keeps_prose():
    assert strip_suggestion_blocks(TWO_BLOCKS) == "Te recomiendo estos módulos:"


def test_usd_suggestion_without_rate_uses_fallback_rate():
    text = '<div class="module-suggestion" data-name="SEO" data-price="$1,000 USD"></div>'
    assert [(s.name, s.price) for s in extract_suggestions(text)] == [("SEO", 60500)]
