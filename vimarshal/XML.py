#    vimarshal/XML.py - XML marshalling for vimarshal.
#    Copyright (C) 2009 Shawn Sulma <genosha@470th.org>
#
#    This program is free software: you can redistribute it and/or modify
#    it under the terms of the GNU General Public License as published by
#    the Free Software Foundation, either version 3 of the License, or
#    (at your option) any later version.
#
#    This program is distributed in the hope that it will be useful,
#    but WITHOUT ANY WARRANTY; without even the implied warranty of
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#    GNU General Public License for more details.
#
#    You should have received a copy of the GNU General Public License
#    along with this program.  If not, see <http://www.gnu.org/licenses/>.
r"""vimarshal/XML.py converts between typed values and ElementTree elements.

Every value is expressed as a single element whose tag is the field (or parameter)
name.  The representation used is:

    <name xsi:type='TypeName'>...</name> - a data object.  The ``xsi:type`` attribute
        always names the concrete type, since a field may hold any subtype of its
        declared type.  Contains one child element per present field, in schema order.

    <name type='Folder'>group-d1</name> - a managed object reference.  The plain
        ``type`` attribute names the managed object type; the text is the reference id.

    <name>text</name> - a primitive or enum value.  Booleans are ``true``/``false``,
        timestamps ISO-8601.

    <name>..</name><name>..</name> - a sequence: repeated siblings, no container.

The :class:`Encoder` checks every value against the type statically expected at its
position (the declared type of the field or parameter).  The :class:`Decoder` uses the
``xsi:type`` attribute of an element when present and the statically expected type
otherwise.
"""
import datetime
import xml.etree.ElementTree as ET

from vimarshal import NS_XSI, TypeResolver, category_of, localname
from vimarshal import PRIMITIVE, SEQUENCE, STRUCT, ENUM, HANDLE
from vimarshal import TypeMismatch, UnknownField, UnsupportedValue, UnsupportedCategory, AnyTypeDecodeUnsupported, MalformedValue

__all__ = [ 'Encoder', 'Decoder', 'dumps', 'loads', 'tostring', 'XSI_TYPE' ]

XSI_TYPE = '{%s}type' % NS_XSI

ET.register_namespace( 'xsi', NS_XSI )

def _resolver ( types ) :
    return types if isinstance( types, TypeResolver ) else TypeResolver( types )

class Encoder ( object ) :
    def __init__ ( self, types ) :
        self.types = _resolver( types )

    def encode ( self, obj, wire_type, name, attrs = None, parent = None ) :
        r"""Express ``obj`` as XML element(s) named ``name``, checking it against the
        expected ``wire_type`` (which may be None for "anything").  If ``parent`` is
        given, the elements are appended to it and ``parent`` is returned.  Otherwise
        the single element is returned (a list of elements for a sequence)."""
        if parent is not None :
            self._encode( parent, name, wire_type, obj, attrs or {} )
            return parent
        holder = ET.Element( 'holder' )
        self._encode( holder, name, wire_type, obj, attrs or {} )
        children = list( holder )
        return children if category_of( obj ) == SEQUENCE else children[0]

    def _expected ( self, wire_type ) :
        kind = self.types.resolve( wire_type ) if wire_type else None
        if kind is not None and kind.category == PRIMITIVE and kind.untyped :
            return None, True
        return kind, False

    def _encode ( self, parent, name, wire_type, obj, attrs ) :
        category = category_of( obj )
        if category is None :
            raise UnsupportedValue( "unexpected object class %s for field %r" % ( type( obj ).__name__, name ) )
        expected, untyped = self._expected( wire_type )
        if expected is not None and expected.category == SEQUENCE and category != SEQUENCE :
            raise TypeMismatch( "expected array for field %r in %s" % ( name, wire_type ) )
        return getattr( self, "encode_" + category )( parent, name, wire_type, expected, untyped, obj, attrs )

    def _element ( self, parent, name, attrs, text = None ) :
        e = ET.SubElement( parent, name )
        for k, v in attrs.items() :
            e.set( k, v )
        if text is not None :
            e.text = text
        return e

    def _check ( self, name, expected, value_type, exact = False ) :
        if expected is None :
            return
        ok = expected is value_type if exact else expected.is_supertype_of( value_type )
        if not ok :
            raise TypeMismatch( "expected %s, got %s for field %r" % ( expected.wire_name, value_type.wire_name, name ) )

    def encode_handle ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        self._check( name, expected, obj._type )
        attrs = dict( attrs, type = obj._type.wire_name )
        return self._element( parent, name, attrs, obj._ref )

    def encode_struct ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        self._check( name, expected, obj._type )
        own = { XSI_TYPE : obj._type.wire_name }
        own.update( attrs )
        e = self._element( parent, name, own )
        for desc in obj._type.full_properties :
            value = obj._props.get( desc.name )
            if value is None :
                continue
            self._encode( e, desc.name, desc.wire_type, value, {} )
        return e

    def encode_enum ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        self._check( name, expected, obj._type, exact = True )
        return self._element( parent, name, attrs, obj.value )

    def encode_mapping ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        if expected is None or expected.category != STRUCT :
            raise UnsupportedValue( "cannot build a data object for field %r without a known struct type" % name )
        return self.encode_struct( parent, name, wire_type, expected, untyped, expected( obj ), attrs )

    def encode_sequence ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        if expected is None or expected.category != SEQUENCE :
            raise TypeMismatch( "array given for field %r, but it is a %s" % ( name, wire_type ) )
        inner = expected.inner.wire_name
        for item in obj :
            self._encode( parent, name, inner, item, attrs )

    def encode_primitive ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        if untyped :
            raise TypeMismatch( "field %r is untyped; wrap the value in Typed()" % name )
        if expected is not None :
            if expected.category == ENUM :
                if obj not in expected.values :
                    raise TypeMismatch( "%r is not a value of %s for field %r" % ( obj, expected.wire_name, name ) )
            elif expected.category != PRIMITIVE or not expected.accepts( obj ) :
                raise TypeMismatch( "expected %s, got %s for field %r" % ( expected.wire_name, type( obj ).__name__, name ) )
        return self._element( parent, name, attrs, primitive_text( obj ) )

    def encode_typed ( self, parent, name, wire_type, expected, untyped, obj, attrs ) :
        return self._encode( parent, name, None, obj.value, dict( attrs, **{ XSI_TYPE : obj.type } ) )

def primitive_text ( obj ) :
    if isinstance( obj, bool ) :
        return 'true' if obj else 'false'
    if isinstance( obj, datetime.datetime ) :
        return obj.isoformat()
    return str( obj )

def parse_timestamp ( text ) :
    stamp = text.strip()
    if stamp.endswith( 'Z' ) :
        stamp = stamp[:-1] + '+00:00'
    try :
        return datetime.datetime.fromisoformat( stamp )
    except ValueError :
        raise MalformedValue( "%r is not an xsd:dateTime" % text )

def parse_integer ( text ) :
    try :
        return int( text, 10 )
    except ValueError :
        raise MalformedValue( "%r is not an xsd:int" % text )

class Decoder ( object ) :
    def __init__ ( self, types, connection = None ) :
        self.types = _resolver( types )
        self.connection = connection

    def decode ( self, element, wire_type ) :
        kind = self.types.resolve( element.get( XSI_TYPE ) or wire_type )
        return getattr( self, "decode_" + kind.category )( element, kind )

    def decode_sequence ( self, element, kind ) :
        return [ self._decode_as( child, kind.inner ) for child in element ]

    def _decode_as ( self, element, kind ) :
        if element.get( XSI_TYPE ) :
            return self.decode( element, None )
        return getattr( self, "decode_" + kind.category )( element, kind )

    def decode_struct ( self, element, kind ) :
        fields = {}
        for child in element :
            field = localname( child.tag )
            desc = kind.find_property( field )
            if desc is None :
                raise UnknownField( "unexpected field %r in %s" % ( field, kind.wire_name ) )
            if desc.is_sequence :
                inner = self.types.resolve( desc.wire_type ).inner
                fields.setdefault( field, [] ).append( self._decode_as( child, inner ) )
            else :
                fields[field] = self.decode( child, desc.wire_type )
        return kind( fields )

    def decode_reference ( self, element, kind ) :
        target = self.types.resolve( element.get( 'type' ) )
        if target.category != HANDLE :
            raise UnsupportedCategory( "reference to non-managed type %s" % target.wire_name )
        return target( self.connection, element.text )

    def decode_handle ( self, element, kind ) :
        if element.get( 'type' ) :
            kind = self.types.resolve( element.get( 'type' ) )
        return kind( self.connection, element.text )

    def decode_enum ( self, element, kind ) :
        return element.text or ''

    def decode_primitive ( self, element, kind ) :
        return primitive_decoders[kind.kind]( element.text or '' )

def _untyped ( text ) :
    raise AnyTypeDecodeUnsupported( "attempted to deserialize an anyType" )

primitive_decoders = { 'string' : lambda text : text
    , 'integer' : parse_integer
    , 'boolean' : lambda text : text in ( 'true', '1' )
    , 'timestamp' : parse_timestamp
    , 'untyped' : _untyped }

def tostring ( element ) :
    r"""Serialize ``element`` to a string.  ElementTree leaves carriage returns in text
    raw, and a parser reads those back as newlines, so they go out as character
    references."""
    return ET.tostring( element, encoding = 'unicode' ).replace( '\r', '&#13;' )

def dumps ( types, obj, wire_type, name ) :
    r"""Encode ``obj`` as the single element ``name`` and return it as a string."""
    return tostring( Encoder( types ).encode( obj, wire_type, name ) )

def loads ( types, s, wire_type, connection = None ) :
    r"""Decode the XML document ``s`` as a value of ``wire_type``."""
    return Decoder( types, connection ).decode( ET.fromstring( s ), wire_type )
