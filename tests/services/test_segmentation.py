from fireworks_finder.services.segmentation import (
    RawDocument,
    SegmentRule,
    describe_document,
    document_lines,
    segment,
)


def make_document(html: str) -> RawDocument:
    return RawDocument(source="test", text=html)


def test_scan_excludes_blocks_outside_length_bounds() -> None:
    too_short = "Fireworks tonight in Edina!"
    lower_bound = "Fireworks " + "x" * 40
    upper_bound = "Fireworks " + "y" * 990
    too_long = "Fireworks " + "z" * 991
    html = "<html><body>" + "".join(
        f"<p>{text}</p>" for text in (too_short, lower_bound, upper_bound, too_long)
    ) + "</body></html>"

    blocks = list(segment(make_document(html), SegmentRule.SCAN))

    assert [block.text for block in blocks] == [lower_bound, upper_bound]
    assert [block.index for block in blocks] == [0, 1]
    assert all(block.origin == "paragraph" for block in blocks)


def test_segment_is_single_pass() -> None:
    html = "<p>Minneapolis fireworks over the river at dusk, a Fourth of July tradition.</p>"
    blocks = segment(make_document(html), SegmentRule.SCAN)

    assert len(list(blocks)) == 1
    assert list(blocks) == []


def test_header_follow_collects_up_to_three_siblings_with_hints() -> None:
    html = """
    <html><body>
      <h2>Site Navigation</h2>
      <p>Home About Contact</p>
      <h3>Minneapolis Red, White &amp; Boom Fireworks</h3>
      <p>Held at Boom Island Park along the river.</p>
      <p>Fireworks start at 10:00 p.m.</p>
      <p>Free admission for everyone.</p>
      <p>This paragraph is past the sibling limit.</p>
      <h3>Stillwater July 4th</h3>
      <h4>Unrelated sidebar heading</h4>
    </body></html>
    """

    blocks = list(segment(make_document(html), SegmentRule.HEADER_FOLLOW))

    assert len(blocks) == 1
    block = blocks[0]
    assert block.anchor == "Minneapolis Red, White & Boom Fireworks"
    assert block.origin == "header+sibling"
    assert block.text.startswith("Minneapolis Red, White & Boom Fireworks Held at Boom Island Park")
    assert "Free admission" in block.text
    assert "sibling limit" not in block.text
    assert block.hints == {
        "location": "Held at Boom Island Park along the river.",
        "time": "10:00 p.m.",
    }


def test_line_pair_requires_exact_city_line_and_long_follower() -> None:
    html = """
    <html><body>
      <h2>Bloomington</h2>
      <p>Fireworks at dusk over Normandale Lake, July 3.</p>
      <h2>Duluth</h2>
      <p>Short.</p>
      <p>Bayfront Festival Park show begins at 10:15 p.m.</p>
      <p>Visit Minneapolis for more</p>
      <h2>Edina</h2>
    </body></html>
    """

    blocks = list(
        segment(
            make_document(html),
            SegmentRule.LINE_PAIR,
            anchors=("Bloomington", "Duluth", "Minneapolis", "Edina"),
        )
    )

    assert [(block.anchor, block.text) for block in blocks] == [
        ("Bloomington", "Fireworks at dusk over Normandale Lake, July 3."),
    ]


def test_line_pair_accepts_plain_text_documents() -> None:
    text = "Fireworks list\n\nAustin\n   Fireworks launch at dusk from the fairgrounds\n"

    blocks = list(segment(make_document(text), SegmentRule.LINE_PAIR, anchors=("Austin",)))

    assert len(blocks) == 1
    assert blocks[0].anchor == "Austin"
    assert blocks[0].text == "Fireworks launch at dusk from the fairgrounds"


def test_document_lines_splits_on_block_elements() -> None:
    html = "<div><h2>Ely</h2><p>Fireworks at <strong>dusk</strong> on the lake.<br>Rain date July 5.</p></div>"

    assert document_lines(make_document(html)) == [
        "Ely",
        "Fireworks at dusk on the lake.",
        "Rain date July 5.",
    ]


def test_describe_document_reports_structure() -> None:
    html = """
    <html><head><title>4th of July Fireworks</title><script>var x = 1;</script></head>
    <body><h3 class="entry-title">Fireworks in Edina</h3><p>Join us at Centennial Lakes Park for the show.</p></body></html>
    """

    info = describe_document(make_document(html))

    assert info["page_title"] == "4th of July Fireworks"
    assert info["h3_count"] == 1
    assert info["entry_title_count"] == 1
    assert info["sample_headers"] == ["Fireworks in Edina"]
    assert info["sample_paragraphs"] == ["Join us at Centennial Lakes Park for the show."]
    assert info["has_fireworks"] is True
    assert info["has_july"] is False


def test_header_time_hint_drops_trailing_full_stop() -> None:
    html = """
    <html><body>
      <h3>Edina Fourth of July Fireworks</h3>
      <p>Rosland Park, fireworks at 9:45 pm.</p>
    </body></html>
    """

    blocks = list(segment(make_document(html), SegmentRule.HEADER_FOLLOW))

    assert blocks[0].hints["time"] == "9:45 pm"
