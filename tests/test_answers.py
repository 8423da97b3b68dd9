import json

from sistema_mar.answers import (
    Scalar, MultiValue, from_input, encode_answer, decode_answer, answer_text,
)


def test_checkbox_answer_is_stored_as_json_array():
    encoded = encode_answer(MultiValue(('Instagram', 'Indicação')))
    assert encoded == '["Instagram", "Indicação"]'
    assert decode_answer(encoded) == MultiValue(('Instagram', 'Indicação'))


def test_scalar_answer_is_stored_verbatim():
    assert encode_answer(Scalar('Acme Inc')) == 'Acme Inc'
    assert decode_answer('Acme Inc') == Scalar('Acme Inc')


def test_missing_answer_stays_none():
    assert encode_answer(None) is None
    assert decode_answer(None) is None
    assert from_input(None) is None
    assert answer_text(None) == ''


def test_from_input_tags_request_values():
    assert from_input(['a', 'b']) == MultiValue(('a', 'b'))
    assert from_input(42) == Scalar('42')
    assert from_input('texto') == Scalar('texto')


def test_malformed_array_is_kept_as_legacy_text():
    assert decode_answer('[Instagram, Google') == Scalar('[Instagram, Google')
    assert decode_answer('[not json]') == Scalar('[not json]')


def test_numeric_array_values_become_strings():
    assert decode_answer('[1, 2]') == MultiValue(('1', '2'))


def test_answer_text_joins_multi_values():
    assert answer_text('["Instagram", "Google"]') == 'Instagram, Google'
    assert answer_text('["Instagram", "Google"]', separator=' | ') == 'Instagram | Google'
    assert answer_text('50') == '50'


def test_to_json_shapes():
    assert MultiValue(('x',)).to_json() == ['x']
    assert Scalar('y').to_json() == 'y'


def test_object_answer_is_stored_as_json():
    encoded = encode_answer(from_input({'outro': 'Feiras', 'canais': ['Instagram']}))
    assert json.loads(encoded) == {'outro': 'Feiras', 'canais': ['Instagram']}
    assert decode_answer(encoded) == Scalar(encoded)
