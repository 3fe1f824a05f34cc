# claw

A library for Claw Structs: a compact, 8-byte aligned binary format whose
layout is described by field mappings. It encodes and decodes Structs,
offers a reflection layer for reading and writing fields by descriptor, and
writes and reads the JSON form of Structs. It has no dependencies outside the
standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `claw.header` – `Header`, the 8-byte header that starts every Struct and
  field: a 16-bit field number, an 8-bit field type and 40 final bits that
  hold a size or an item count. `Header.from_bytes()` reads one and
  `Header.to_bytes()` writes one; values that do not fit raise `ValueError`.
- `claw.mapping` – `FieldType`, `FieldDescr` and `Map`, which describe the
  fields of a Struct. `Map.validate()` raises `MappingError` when a Struct
  or list-of-Structs field has no mapping; `Map.by_name()` raises
  `KeyError` for an unknown name.
- `claw.enums` – `EnumValue`, `EnumGroup` and `EnumGroups`. Groups are
  looked up by index (`get`), by name (`by_name`) or by number
  (`by_value`); the lookups by name and number return `None` when nothing
  matches.
- `claw.registry` – `register_package()` and `package_descr()`, a
  process-wide registry of package descriptors keyed by their `full_path`.
  Registering the same path twice raises `DuplicatePackageError`.
- `claw.codec` – `Struct`, with `set_field()`, `get_field()`,
  `delete_field()`, `is_set()`, `new_from()`, `marshal()` and
  `unmarshal()`, and the list containers `Bools`, `Numbers`, `BytesList`
  and `StructList`. By default scalar fields holding their zero value are
  left out of the encoding; `set_no_zero_type_compression()` turns that
  off. Fields beyond those in the mapping are kept when decoding and written
  back out unchanged. Malformed input raises `DecodeError`; a Struct that
  cannot be encoded raises `EncodeError`.
- `claw.values` – `Value`, a typed holder read with `as_bool()`,
  `as_int()`, `as_uint()`, `as_float()`, `as_string()`, `as_bytes()`,
  `as_enum()`, `as_list()`, `as_struct()` and `to_python()`, and built with
  `value_of_bool()`, `value_of_number()`, `value_of_string()`,
  `value_of_bytes()`, `value_of_enum()`, `value_of_list()` and
  `value_of_struct()`. Reading a Value as the wrong type raises `TypeError`.
- `claw.reflect_lists` – list views that hand out their items as Values
  (`ListBools`, `ListNumbers`, `ListBytes`, `ListStrings`, `ListStructs`)
  and `list_from()`, which builds one from Python items.
- `claw.reflection` – `PackageDescr`, `StructDescrs`, `StructDescr`,
  `FieldDescr` and `StructImpl` for reading and writing Struct fields by
  descriptor, and `get_value()`, which reads a field of a bare `Struct`,
  looking enum groups up in the registry.
- `claw.jsonio` – `Array`, which writes Structs as the entries of a JSON
  array to a text stream; `Options`, whose `use_enum_numbers` writes enums
  as numbers instead of names; `Decoder`, which reads a JSON object back
  into a Struct (unknown keys raise `ValueError` unless `allow_unknown` is
  set); and `format_float()`, which formats 32- and 64-bit floats for JSON.

## Encoding and decoding

```python
from claw.codec import Struct
from claw.mapping import FieldDescr, FieldType, Map

person = Map(
    name="Person",
    fields=[
        FieldDescr(name="Age", type=FieldType.UINT8, field_num=0),
        FieldDescr(name="Name", type=FieldType.STRING, field_num=1),
    ],
)

s = Struct(person)
s.set_field(0, 42)
s.set_field(1, "Ada")
data = s.marshal()

copy = Struct(person)
copy.unmarshal(data)
assert copy.get_field(0) == 42
assert copy.get_field(1) == "Ada"
```

## Reflection and JSON

```python
import io

from claw.jsonio import Array, Decoder, Options
from claw.mapping import FieldType
from claw.reflection import FieldDescr, StructDescr
from claw.values import value_of_number, value_of_string

descr = StructDescr(
    name="Person",
    mapping=person,
    fields=[FieldDescr(fd) for fd in person.fields],
)

p = descr.new()
p.set(descr.field_descr_by_name("Age"), value_of_number(42, FieldType.UINT8))
p.set(descr.field_descr_by_name("Name"), value_of_string("Ada"))

out = io.StringIO()
with Array(Options(), out) as array:
    array.write(p)
assert out.getvalue() == '[{"Age":42,"Name":"Ada"}]'

back = Decoder().decode('{"Age": 7}', descr.new())
assert back.get(descr.field_descr_by_name("Age")).as_uint() == 7
```

## What it does not do

The package does not read schema files and does not generate typed classes
for Structs or enums. Mappings, enum groups and descriptors are built by
hand in Python, as in the examples above. There is no command-line tool.