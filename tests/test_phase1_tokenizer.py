"""
Tests for Phase 1: Tag registry and tokenizer.

CRITICAL TESTS:
1. test_batched_snapshots_split - Several statements share one datagram
2. test_garbage_after_max_arity - Unknown text never swallows the next tag
3. test_unknown_tag_after_optional_fields - Optional fields never absorb a tag
4. test_connection_notice - Plain-text connection notices are recognized
"""

import pytest

from pss_live.protocol.registry import (
    CONNECTION_SPEC,
    CONNECTION_TAG,
    TAG_REGISTRY,
    EventKind,
    is_registered,
    lookup,
    tags_for,
)
from pss_live.protocol.tokenizer import Statement, Tokenizer, tokenize


class TestRegistry:
    """Test the static tag table."""

    def test_all_sub_score_tags_registered(self):
        """Every s<athlete><round> tag is present."""
        assert set(tags_for(EventKind.SUB_SCORE)) == {'s11', 's12', 's13', 's21', 's22', 's23'}

    def test_arity_bounds(self):
        """Arity limits match the wire format."""
        assert TAG_REGISTRY['pt1'].accepts(1)
        assert not TAG_REGISTRY['pt1'].accepts(2)
        assert TAG_REGISTRY['ch0'].accepts(0)
        assert TAG_REGISTRY['wrd'].accepts(6)
        assert not TAG_REGISTRY['wrd'].accepts(4)
        assert TAG_REGISTRY['at1'].accepts(12)

    def test_takes_field(self):
        """Optional positions refuse tag-shaped values."""
        clk = TAG_REGISTRY['clk']
        assert clk.takes_field(0, 'zz1')
        assert clk.takes_field(1, 'start')
        assert not clk.takes_field(1, 'zz1')
        assert not clk.takes_field(2, 'start')
        assert not TAG_REGISTRY['ch0'].takes_field(0, 'sc1')
        assert TAG_REGISTRY['wmh'].takes_field(1, '2-1')

    def test_lookup(self):
        """Lookup covers regular tags and connection notices."""
        assert lookup('sc1').kind == EventKind.SCORE
        assert lookup(CONNECTION_TAG) is CONNECTION_SPEC
        assert lookup('zz9') is None

    def test_tags_are_case_sensitive(self):
        """Tags are matched exactly."""
        assert is_registered('pt1')
        assert not is_registered('PT1')


class TestTokenizer:
    """Test statement splitting."""

    def test_single_statement(self):
        """One tag with one field."""
        assert tokenize("pt1;3;") == [Statement('pt1', ('3',))]

    def test_batched_snapshots_split(self):
        """
        CRITICAL TEST: Tags delimit statements inside one datagram.
        """
        statements = tokenize("wg1;0;wg2;1;")
        assert statements == [Statement('wg1', ('0',)), Statement('wg2', ('1',))]

        statements = tokenize("s11;3;s21;0;s12;0;s22;0;s13;0;s23;0;")
        assert [s.tag for s in statements] == ['s11', 's21', 's12', 's22', 's13', 's23']

    def test_garbage_after_max_arity(self):
        """
        CRITICAL TEST: Unknown text after a full statement is isolated.
        """
        statements = tokenize("pt1;3;zz1;5;hl1;50;")

        assert len(statements) == 3
        assert statements[0] == Statement('pt1', ('3',))
        assert statements[1].tag == 'zz1'
        assert statements[1].fields == ('5',)
        assert not statements[1].recognized
        assert statements[2] == Statement('hl1', ('50',))

    @pytest.mark.parametrize("payload,first", [
        ("clk;2:00;zz1;5;rnd;1;", Statement('clk', ('2:00',))),
        ("ch1;zz1;5;rnd;1;", Statement('ch1', ())),
        ("wmh;KIM;zz1;5;rnd;1;", Statement('wmh', ('KIM',))),
        ("ij1;1:00;zz1;5;rnd;1;", Statement('ij1', ('1:00',))),
        ("brk;0:59;zz1;5;rnd;1;", Statement('brk', ('0:59',))),
    ])
    def test_unknown_tag_after_optional_fields(self, payload, first):
        """
        CRITICAL TEST: A tag-shaped token ends a statement with optional fields.
        """
        statements = tokenize(payload)

        assert statements[0] == first
        assert statements[1].tag == 'zz1'
        assert statements[1].fields == ('5',)
        assert not statements[1].recognized
        assert statements[2] == Statement('rnd', ('1',))

    def test_optional_flag_still_taken(self):
        """Non tag-shaped values stay in the statement for the decoder to judge."""
        assert tokenize("clk;1:00;pause;") == [Statement('clk', ('1:00', 'pause'))]
        assert tokenize("ch1;1;1;") == [Statement('ch1', ('1', '1'))]

    def test_tag_shaped_required_field_kept(self):
        """Required positions take any value."""
        assert tokenize("mch;abc;Final;") == [Statement('mch', ('abc', 'Final'))]

    def test_stray_separators_skipped(self):
        """Empty tokens after a full statement or before any tag are dropped."""
        assert tokenize("pt1;3;;") == [Statement('pt1', ('3',))]
        assert tokenize("pt1;3;;;hl1;50;") == [Statement('pt1', ('3',)), Statement('hl1', ('50',))]
        assert tokenize(";;sc1;3;") == [Statement('sc1', ('3',))]

    def test_leading_garbage(self):
        """Text before the first tag becomes an unrecognized statement."""
        statements = tokenize("foo;bar;sc1;3;")
        assert statements[0].tag == 'foo'
        assert not statements[0].recognized
        assert statements[1] == Statement('sc1', ('3',))

    def test_connection_notice(self):
        """
        CRITICAL TEST: Connection notices are not tag-prefixed.
        """
        statements = tokenize("Udp Port 6000 connected;")
        assert len(statements) == 1
        assert statements[0].is_connection
        assert statements[0].fields == ('6000', 'connected')

    def test_empty_payload(self):
        """Empty and whitespace-only payloads produce nothing."""
        assert tokenize("") == []
        assert tokenize("   \r\n") == []

    def test_zero_field_statement(self):
        """Challenge request carries no fields."""
        assert tokenize("ch1;") == [Statement('ch1', ())]

    def test_missing_terminal_separator(self):
        """Final ';' is optional."""
        assert tokenize("sc1;3;sc2;0") == [Statement('sc1', ('3',)), Statement('sc2', ('0',))]

    def test_whitespace_trimmed(self):
        """Fields are stripped."""
        assert tokenize(" sc1 ; 3 ;") == [Statement('sc1', ('3',))]

    def test_empty_field_kept(self):
        """Empty fields in the middle of a statement are preserved."""
        assert tokenize("wmh;;2-1;") == [Statement('wmh', ('', '2-1'))]

    def test_unbounded_statement(self):
        """Athlete info runs until the next registered tag."""
        statements = tokenize("at1;KIM;KIM Taejoon;KOR;at2;JEN;")
        assert statements[0].fields == ('KIM', 'KIM Taejoon', 'KOR')
        assert statements[1] == Statement('at2', ('JEN',))

    def test_custom_registry(self):
        """Tokenizer honours the registry it is given."""
        registry = {'sc1': TAG_REGISTRY['sc1']}
        statements = Tokenizer(registry).tokenize("sc1;3;sc2;0;")
        assert statements[0] == Statement('sc1', ('3',))
        assert not statements[1].recognized


class TestStatementWire:
    """Test statement serialization."""

    def test_to_wire(self):
        assert Statement('wg1', ('2',)).to_wire() == "wg1;2;"
        assert Statement('ch1', ()).to_wire() == "ch1;"

    def test_connection_to_wire(self):
        statement = Statement(CONNECTION_TAG, ('6000', 'disconnected'))
        assert statement.to_wire() == "Udp Port 6000 disconnected;"

    def test_repr_marks_unrecognized(self):
        assert '?zz1' in repr(Statement('zz1', ('5',), recognized=False))


@pytest.mark.parametrize("payload,tags", [
    ("pre;FightLoaded;", ['pre']),
    ("clk;1:59;start;", ['clk']),
    ("ij1;1:00;show;ij2;0:30;", ['ij1', 'ij2']),
    ("wrd;rd1;1;rd2;0;rd3;0;", ['wrd']),
])
def test_tag_sequence(payload, tags):
    """Statement tags come out in wire order."""
    assert [s.tag for s in tokenize(payload)] == tags
