"""Math markup renderer tests."""

from services.math_renderer import render_math_markup


def test_empty_content():
    assert render_math_markup("") == ""


def test_inline_math_is_kept_as_tex():
    html = render_math_markup("The derivative is $2x_1 * 3$ here.")
    assert '<span class="math-inline">\\(2x_1 * 3\\)</span>' in html
    # underscores and asterisks inside math never reach Markdown
    assert "<em>" not in html


def test_display_math_is_not_wrapped_in_paragraph():
    html = render_math_markup("Result:\n\n$$\\int_0^1 x\\,dx = \\frac{1}{2}$$\n\nDone.")
    assert '<div class="math-block">\\[\\int_0^1 x\\,dx = \\frac{1}{2}\\]</div>' in html
    assert '<p><div class="math-block">' not in html


def test_bracket_delimiters():
    html = render_math_markup("Inline \\(a+b\\) and display \\[c^2\\]")
    assert '<span class="math-inline">\\(a+b\\)</span>' in html
    assert '<div class="math-block">\\[c^2\\]</div>' in html


def test_tex_is_escaped():
    html = render_math_markup("$a < b$")
    assert "\\(a &lt; b\\)" in html


def test_markdown_formatting():
    html = render_math_markup("# Limits\n\n- first\n- second\n\n**bold** text")
    assert "<h1>Limits</h1>" in html
    assert "<li>first</li>" in html
    assert "<strong>bold</strong>" in html


def test_raw_html_is_escaped():
    html = render_math_markup("<script>alert(1)</script> <img src=x onerror=alert(1)>")
    assert "<script>" not in html
    assert "<img" not in html
    assert "&lt;script&gt;" in html


def test_solution_steps_are_sectioned():
    content = (
        "Let's solve it.\n\n"
        "**Given:** $f(x) = x^3$\n\n"
        "**Formula:** $\\frac{d}{dx}x^n = nx^{n-1}$\n\n"
        "**Step 1:** Apply the power rule.\n\n"
        "**answer:** $3x^2$"
    )
    html = render_math_markup(content)
    assert html.startswith("<p>Let's solve it.</p>")
    assert html.count('class="solution-step"') == 4
    for label in ("Given", "Formula", "Step 1", "Answer"):
        assert f'<span class="solution-step-label">{label}</span>' in html


def test_markdown_links_and_images_stay_text():
    html = render_math_markup(
        "[click me](javascript:alert(document.cookie)) ![x](http://evil.example/p.png)"
    )
    assert "<a" not in html
    assert "<img" not in html
    assert "[click me](javascript:alert(document.cookie))" in html


def test_reference_links_stay_text():
    html = render_math_markup("See [the proof][1] or <http://evil.example>.\n\n[1]: javascript:alert(1)")
    assert "<a" not in html
    assert "[the proof][1]" in html


def test_placeholder_lookalike_text_is_kept():
    html = render_math_markup("Use the token %%MATH0%% literally")
    assert html == "<p>Use the token %%MATH0%% literally</p>"


def test_placeholder_lookalike_does_not_duplicate_math():
    html = render_math_markup("$a$ and %%MATH0%%")
    assert html.count("\\(a\\)") == 1
    assert "%%MATH0%%" in html


def test_private_use_sentinels_in_input_are_dropped():
    html = render_math_markup("x \ue0007\ue001 y")
    assert html == "<p>x 7 y</p>"
    assert "math-inline" not in html
