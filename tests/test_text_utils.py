"""
Text Helper Tests
=================

Covers:
    - Comment masking keeps offsets and leaves string literals alone
    - Brace matching over masked code with URL strings
"""
from cadence_qa.text_utils import block_body, mask_comments


class TestMaskComments:

    def test_offsets_preserved(self):
        code = "let a = 1 // note\n/* block\n comment */ let b = 2"
        masked = mask_comments(code)
        assert len(masked) == len(code)
        assert masked.count("\n") == code.count("\n")
        assert "note" not in masked
        assert "let b = 2" in masked

    def test_url_string_is_not_a_comment(self):
        code = 'return MetadataViews.ExternalURL("https://example.com/nft/".concat(id)) }'
        assert mask_comments(code) == code

    def test_comment_after_string_still_masked(self):
        code = 'let url = "https://example.com" // homepage'
        masked = mask_comments(code)
        assert masked.startswith('let url = "https://example.com"')
        assert "homepage" not in masked

    def test_escaped_quote_inside_string(self):
        code = 'let s = "say \\"hi\\" // not a comment"'
        assert mask_comments(code) == code

    def test_quote_inside_comment_ignored(self):
        code = '// he said "hi\nlet x = 1'
        assert mask_comments(code).endswith("\nlet x = 1")


class TestBlockBody:

    def test_one_line_body_with_url(self):
        code = 'fun url(): String { return "https://example.com" }\nfun next() {}'
        masked = mask_comments(code)
        body, close = block_body(masked, masked.index("{"))
        assert body.strip() == 'return "https://example.com"'
        assert code[close + 1] == "\n"
