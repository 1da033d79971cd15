from src.core.sanitize import ERROR_BLOCK_HTML, render_advisory_html, sanitize_html


def test_script_and_handlers_are_removed():
    out = sanitize_html('<p onclick="alert(1)">Hola</p><script>alert(2)</script>')
    assert "<p>Hola</p>" in out
    assert "script" not in out
    assert "onclick" not in out


def test_javascript_links_are_dropped():
    out = sanitize_html('<a href="javascript:alert(1)">x</a><a href="https://webnova.do">ok</a>')
    assert "javascript:" not in out
    assert 'href="https://webnova.do"' in out


def test_markdown_is_converted():
    out = render_advisory_html("## Análisis\n\n- **Fortaleza**: precio\n- Debilidad")
    assert "<h2>Análisis</h2>" in out
    assert "<strong>Fortaleza</strong>" in out
    assert "<li>" in out


def test_html_answer_is_kept_but_cleaned():
    out = render_advisory_html('<div class="card"><p>Texto</p><img src=x onerror=alert(1)></div>')
    assert '<div class="card"><p>Texto</p>' in out
    assert "img" not in out


def test_suggestion_blocks_are_not_rendered():
    text = 'Sugerencia:\n[MODULO_SUGERIDO]\nnombre: "Chat"\nprecio: "100"\n[/MODULO_SUGERIDO]'
    out = render_advisory_html(text)
    assert "MODULO_SUGERIDO" not in out
    assert "Chat" not in out


def test_html_fence_is_unwrapped():
    out = render_advisory_html("```html\n<p>Hola</p>\n```")
    assert out == "<p>Hola</p>"


def test_error_block_survives_sanitizing():
    assert sanitize_html(ERROR_BLOCK_HTML) == ERROR_BLOCK_HTML
