import pytest

from docs_hound.convert.html_to_md import (
    extract_excerpt,
    extract_title,
    html_to_markdown,
    scrape_page_to_markdown,
)

DOC = """
<html>
<head>
  <title>Install | Example Docs</title>
  <meta name="description" content="How to install the example toolkit.">
  <script>var tracking = 1;</script>
</head>
<body>
  <nav><a href="/">Home</a> <a href="/blog">Blog</a></nav>
  <header>Example Docs header</header>
  <main>
    <h1>Installation</h1>
    <p>Install the package with pip.</p>
    <h2>Requirements</h2>
    <ul><li>Python 3.10</li><li>pip</li></ul>
    <pre><code class="language-python">import example
example.run()</code></pre>
  </main>
  <footer>Copyright Example</footer>
</body>
</html>
"""


def test_scrape_page_extracts_main_article_as_markdown():
    page = scrape_page_to_markdown("https://docs.example.com/install", DOC)

    assert page.title == "Installation"
    assert page.excerpt == "How to install the example toolkit."
    assert "# Installation" in page.content
    assert "## Requirements" in page.content
    assert "- Python 3.10" in page.content
    assert "```python" in page.content
    assert "example.run()" in page.content
    for chrome in ["Blog", "Example Docs header", "Copyright", "tracking"]:
        assert chrome not in page.content


def test_title_falls_back_to_title_tag_then_untitled():
    assert extract_title("<title>Only Title</title><p>x</p>") == "Only Title"
    assert extract_title("<p>nothing</p>") == "Untitled"


def test_excerpt_falls_back_to_first_paragraph_and_truncates():
    long_text = "word " * 100
    html = f"<body><article><p> </p><p>{long_text}</p></article></body>"
    excerpt = extract_excerpt(html)
    assert excerpt is not None
    assert excerpt.startswith("word word")
    assert len(excerpt) <= 200
    assert excerpt.endswith("...")


def test_largest_div_is_used_without_semantic_container():
    html = (
        "<body><div>short</div>"
        "<div><p>This is the long body of the documentation page.</p></div></body>"
    )
    assert "long body" in html_to_markdown(html)


def test_empty_page_raises():
    with pytest.raises(ValueError, match="No article content"):
        scrape_page_to_markdown("https://docs.example.com/empty", "<html><body></body></html>")
