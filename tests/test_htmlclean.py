import pytest

from inbucket.sanitize.htmlclean import sanitize_html, sanitize_style_tags


@pytest.mark.parametrize("text", ["", "plain string", "one &lt; two"])
def test_plain_strings(text):
    assert sanitize_html(text) == text


@pytest.mark.parametrize(
    "text",
    [
        "<p>paragraph</p>",
        "<b>bold</b>",
        "<i>italic</b>",
        "<em>emphasis</em>",
        "<strong>strong</strong>",
        "<div><span>text</span></div>",
        "<center>text</center>",
    ],
)
def test_simple_formatting(text):
    assert sanitize_html(text) == text


@pytest.mark.parametrize(
    "text, want",
    [
        ("safe<script>nope</script>", "safe"),
        (
            '<a onblur="alert(something)" href="http://mysite.com">mysite</a>',
            '<a href="http://mysite.com" rel="nofollow">mysite</a>',
        ),
    ],
)
def test_script_tags(text, want):
    assert sanitize_html(text) == want


@pytest.mark.parametrize(
    "text, want",
    [
        ("", ""),
        ("<div>", "<div>"),
        ("<div></div>", "<div></div>"),
        ("<div>foo bar</div>", "<div>foo bar</div>"),
        ("<br/>", "<br/>"),
        ('<div id="me">', '<div id="me">'),
        ("<div id=\"me\" title='best'>", '<div id="me" title="best">'),
        ('<div id="me" style="color: red;">', '<div id="me" style="color: red;">'),
        ("<div id=\"me\" style='color: red;'>", '<div id="me" style="color: red;">'),
        ('<div id="me" StYlE="color: red;">', '<div id="me" style="color: red;">'),
        ('<br style="border: 1px solid red;"/>', '<br style="border: 1px solid red;"/>'),
        ('<br StYlE="border: 1px solid red;"/>', '<br style="border: 1px solid red;"/>'),
        ('<br StYlE="position: fixed;"/>', "<br/>"),
        (
            "<p id='i' title=\"cla'zz\" style=\"font-size: 25px;\"><b>some text</b></p>",
            '<p id="i" title="cla&#39;zz" style="font-size: 25px;"><b>some text</b></p>',
        ),
        ("<div id=\"me\" style='position: absolute;'>", '<div id="me">'),
    ],
)
def test_sanitize_style_tags_through_html(text, want):
    assert sanitize_html(text) == want


def test_style_tag_filter_alone_keeps_unknown_tags():
    assert sanitize_style_tags('<x-y a="1" style="position: fixed">t</x-y>') == '<x-y a="1">t</x-y>'


def test_javascript_href_dropped():
    assert sanitize_html('<a href="javascript:alert(1)">x</a>') == "x"