#    vimarshal/__init__.py - VIM MARSHALling type system
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
r"""VIMARSHAL is a library to marshal typed values to and from the XML (SOAP) wire
representation used by VIM-style remote management APIs.  Unlike a fixed set of
generated classes, the shape of the type system (data object field lists, enum value
sets, managed object types) is loaded at runtime from a schema description.

By itself, the vimarshal module provides the runtime type model.  Wire type names are
resolved through a :class:`TypeResolver` (backed by a :class:`TypeRegistry`) into one
of a small closed set of runtime types:

 - :class:`PrimitiveType` for the ``xsd:`` primitives (string, integer family, boolean,
   dateTime and the untyped ``anyType``);
 - :class:`SequenceType` for ``ArrayOf...`` names;
 - :class:`StructType` for data objects (ordered fields, single inheritance);
 - :class:`EnumType` for closed sets of strings;
 - :class:`ReferenceType` for ``ManagedObjectReference``;
 - :class:`HandleType` for managed object types.

Values of those types are plain python values (str, int, bool, datetime, list, dict)
or instances of :class:`DataObject`, :class:`EnumValue`, :class:`ManagedObject` and
:class:`Typed`.  Every value maps to exactly one *category*; the XML encoder and
decoder (:mod:`vimarshal.XML`) dispatch on categories only.

The remote call layer lives in :mod:`vimarshal.SOAP`.
"""
from collections import namedtuple
import datetime
from logging import getLogger

import simplejson as json

__version__ = "0.1"
__author__ = "Shawn Sulma <genosha@470th.org>"

log = getLogger( __name__ )

NS_XSI = 'http://www.w3.org/2001/XMLSchema-instance'
NS_XSD = 'http://www.w3.org/2001/XMLSchema'
ARRAY_PREFIX = 'ArrayOf'
XSD_PREFIX = 'xsd:'

# value categories. closed set; see category_of()
PRIMITIVE = 'primitive'
SEQUENCE = 'sequence'
STRUCT = 'struct'
ENUM = 'enum'
REFERENCE = 'reference'
HANDLE = 'handle'
TYPED = 'typed'
MAPPING = 'mapping'

class VimError ( Exception ) :
    pass

class MarshalError ( VimError ) :
    r"""A local marshalling defect (as opposed to a :class:`RemoteFault`)."""

class UnknownType ( MarshalError, TypeError ) :
    pass

class UnsupportedPrimitive ( UnknownType ) :
    pass

class UnsupportedCategory ( MarshalError, TypeError ) :
    pass

class TypeMismatch ( MarshalError, TypeError ) :
    pass

class UnknownField ( MarshalError, ValueError ) :
    pass

class UnsupportedValue ( MarshalError, TypeError ) :
    pass

class AnyTypeDecodeUnsupported ( MarshalError, TypeError ) :
    pass

class MalformedValue ( MarshalError, ValueError ) :
    r"""Element text that cannot be read as its primitive type."""

class RemoteFault ( VimError ) :
    r"""The server answered with a SOAP fault instead of a result."""
    def __init__ ( self, code, message, detail = None ) :
        VimError.__init__( self, "%s: %s" % ( code, message ) )
        self.code = code
        self.message = message
        self.detail = detail

class TransportError ( VimError, IOError ) :
    pass

Typed = namedtuple( 'Typed', 'type value' )
Typed._category = TYPED
Typed.__doc__ = r"""A value travelling with an explicit wire type tag.  This is the only way to
fill an ``anyType`` slot, e.g. ``Typed( 'xsd:string', 'hello' )``."""

class RuntimeType ( object ) :
    category = None
    wire_name = None

    def is_supertype_of ( self, other ) :
        return self is other

    def __repr__ ( self ) :
        return "<%s %s>" % ( self.__class__.__name__, self.wire_name )

class PrimitiveType ( RuntimeType ) :
    category = PRIMITIVE
    def __init__ ( self, wire_name, kind ) :
        self.wire_name = wire_name
        self.kind = kind # one of 'string', 'integer', 'boolean', 'timestamp', 'untyped'

    @property
    def untyped ( self ) :
        return self.kind == 'untyped'

    def accepts ( self, value ) :
        r"""Whether the python scalar ``value`` may be written into a slot of this type."""
        if self.kind == 'string' :
            return isinstance( value, str )
        if self.kind == 'boolean' :
            return isinstance( value, bool )
        if self.kind == 'integer' :
            return isinstance( value, int ) and not isinstance( value, bool )
        if self.kind == 'timestamp' :
            return isinstance( value, datetime.datetime )
        return False

STRING = PrimitiveType( 'xsd:string', 'string' )
INTEGER = PrimitiveType( 'xsd:int', 'integer' )
BOOLEAN = PrimitiveType( 'xsd:boolean', 'boolean' )
TIMESTAMP = PrimitiveType( 'xsd:dateTime', 'timestamp' )
UNTYPED = PrimitiveType( 'xsd:anyType', 'untyped' )

primitives = { 'string' : STRING, 'int' : INTEGER, 'long' : INTEGER, 'short' : INTEGER, 'byte' : INTEGER
    , 'boolean' : BOOLEAN, 'datetime' : TIMESTAMP, 'anytype' : UNTYPED }

class SequenceType ( RuntimeType ) :
    category = SEQUENCE
    def __init__ ( self, inner, wire_name = None ) :
        self.inner = inner
        self.wire_name = wire_name or ARRAY_PREFIX + inner.wire_name.split( ':' )[-1]

    def __eq__ ( self, other ) :
        return isinstance( other, SequenceType ) and self.inner == other.inner

    def __ne__ ( self, other ) :
        return not self == other

    def __hash__ ( self ) :
        return hash( ( SequenceType, self.inner ) )

class PropertyDescriptor ( namedtuple( 'PropertyDescriptor', 'name wire_type declaring' ) ) :
    __slots__ = ()
    @property
    def is_sequence ( self ) :
        return self.wire_type.startswith( ARRAY_PREFIX )

class _Inheriting ( RuntimeType ) :
    def __init__ ( self, wire_name, parent = None ) :
        self.wire_name = wire_name
        self.parent = parent

    def ancestry ( self ) :
        kind = self
        while kind is not None :
            yield kind
            kind = kind.parent

    def is_supertype_of ( self, other ) :
        return isinstance( other, _Inheriting ) and any( kind is self for kind in other.ancestry() )

class StructType ( _Inheriting ) :
    category = STRUCT
    def __init__ ( self, wire_name, parent = None, properties = () ) :
        _Inheriting.__init__( self, wire_name, parent )
        self.properties = [ PropertyDescriptor( p['name'], _wire_type( p ), self ) for p in properties ]
        self.full_properties = ( parent.full_properties if parent else [] ) + self.properties
        self._by_name = {}
        for desc in self.full_properties :
            if desc.name in self._by_name :
                raise ValueError( "duplicate property %r in %s" % ( desc.name, wire_name ) )
            self._by_name[desc.name] = desc

    def find_property ( self, name ) :
        return self._by_name.get( name )

    def __call__ ( self, fields = None, **kwargs ) :
        r"""Build an instance from a mapping and/or keyword fields.  Keys that are not
        properties of this type raise :class:`UnknownField`."""
        values = dict( fields or {} )
        values.update( kwargs )
        for key in values :
            if key not in self._by_name :
                raise UnknownField( "unexpected field %r for %s" % ( key, self.wire_name ) )
        return DataObject( self, values )

class EnumType ( RuntimeType ) :
    category = ENUM
    def __init__ ( self, wire_name, values = () ) :
        self.wire_name = wire_name
        self.values = tuple( values )

    def __call__ ( self, value ) :
        if value not in self.values :
            raise UnsupportedValue( "%r is not a value of %s" % ( value, self.wire_name ) )
        return EnumValue( self, value )

class ReferenceType ( RuntimeType ) :
    category = REFERENCE
    def __init__ ( self, wire_name = 'ManagedObjectReference' ) :
        self.wire_name = wire_name

    def is_supertype_of ( self, other ) :
        # any managed object can travel as a reference
        return other is self or other.category == HANDLE

class HandleType ( _Inheriting ) :
    category = HANDLE
    def __init__ ( self, wire_name, parent = None, methods = None ) :
        _Inheriting.__init__( self, wire_name, parent )
        self.methods = dict( methods or {} )

    def find_method ( self, name ) :
        for kind in self.ancestry() :
            if name in kind.methods :
                return kind.methods[name]
        return None

    def __call__ ( self, connection, ref ) :
        return ManagedObject( self, connection, ref )

def _wire_type ( desc ) :
    return desc.get( 'wire_type' ) or desc['wsdl_type']

class DataObject ( object ) :
    r"""An instance of a :class:`StructType`.  Fields are sparse: absent fields are not
    stored.  Reading an absent field gives ``None`` (or ``[]`` for sequence fields)."""
    __slots__ = ( '_type', '_props' )
    _category = STRUCT

    def __init__ ( self, kind, props ) :
        self._type = kind
        self._props = dict( ( k, v ) for k, v in props.items() if v is not None )

    def __getattr__ ( self, name ) :
        if name.startswith( '_' ) :
            raise AttributeError( name )
        desc = self._type.find_property( name )
        if desc is None :
            raise AttributeError( "%s has no property %r" % ( self._type.wire_name, name ) )
        return self._props.get( name, [] if desc.is_sequence else None )

    def __getitem__ ( self, name ) :
        return self._props[name]

    def __contains__ ( self, name ) :
        return name in self._props

    def _compact ( self ) :
        return dict( item for item in self._props.items() if item[1] != [] )

    def __eq__ ( self, other ) :
        return isinstance( other, DataObject ) and self._type is other._type and self._compact() == other._compact()

    def __ne__ ( self, other ) :
        return not self == other

    __hash__ = None

    def __repr__ ( self ) :
        return "%s(%s)" % ( self._type.wire_name, ", ".join( "%s=%r" % item for item in self._props.items() ) )

class EnumValue ( str ) :
    r"""A member of an :class:`EnumType`.  Compares equal to its raw string value."""
    _category = ENUM

    def __new__ ( cls, kind, value ) :
        obj = str.__new__( cls, value )
        obj._type = kind
        return obj

    @property
    def value ( self ) :
        return str( self )

class ManagedObject ( object ) :
    r"""A local handle on a remote managed object, bound to one connection.  Methods
    declared for the handle's type in the schema are available as attributes."""
    _category = HANDLE

    def __init__ ( self, kind, connection, ref ) :
        self._type = kind
        self._connection = connection
        self._ref = ref

    def __getattr__ ( self, name ) :
        if name.startswith( '_' ) :
            raise AttributeError( name )
        desc = self._type.find_method( name )
        if desc is None :
            raise AttributeError( "%s has no method %r" % ( self._type.wire_name, name ) )
        def method ( **args ) :
            args['_this'] = self
            return self._connection.call( name, desc, args )
        method.__name__ = name
        return method

    def __eq__ ( self, other ) :
        return isinstance( other, ManagedObject ) and self._type is other._type and self._ref == other._ref

    def __ne__ ( self, other ) :
        return not self == other

    def __hash__ ( self ) :
        return hash( ( self._type.wire_name, self._ref ) )

    def __repr__ ( self ) :
        return '%s("%s")' % ( self._type.wire_name, self._ref )

categories = { list : SEQUENCE, tuple : SEQUENCE, dict : MAPPING
    , str : PRIMITIVE, int : PRIMITIVE, bool : PRIMITIVE, datetime.datetime : PRIMITIVE }

def category_of ( value ) :
    r"""The category of ``value``, or None if it cannot be marshalled."""
    category = getattr( value, '_category', None )
    if isinstance( category, str ) :
        return category
    for kind in type( value ).__mro__ :
        if kind in categories :
            return categories[kind]
    return None

class TypeRegistry ( object ) :
    r"""The schema: maps wire type names to descriptor dicts of the form::

        { 'category' : 'struct' | 'enum' | 'handle' | 'reference',
          'parent' : 'ParentTypeName',                        # struct, handle
          'properties' : [ { 'name' : ..., 'wire_type' : ... } ], # struct
          'values' : [ ... ],                                 # enum
          'methods' : { 'Name' : { 'params' : [...], 'result' : {...} } } } # handle

    Treated as immutable once loaded.
    """
    def __init__ ( self, types = None ) :
        self._types = dict( types or {} )

    def lookup ( self, name ) :
        return self._types.get( name )

    def __contains__ ( self, name ) :
        return name in self._types

    def __len__ ( self ) :
        return len( self._types )

    @classmethod
    def loads ( cls, s ) :
        return cls( json.loads( s ) )

    @classmethod
    def load ( cls, path ) :
        with open( path ) as f :
            types = json.load( f )
        log.debug( "loaded %d types from %s", len( types ), path )
        return cls( types )

class TypeResolver ( object ) :
    r"""Resolves wire type names to runtime types, memoizing the results.  The cache is
    only ever added to; it is safe to share once the registry is loaded."""
    def __init__ ( self, registry ) :
        self.registry = registry
        self.data_object = StructType( 'DataObject' )
        self.managed_object = HandleType( 'ManagedObject' )
        self.reference = ReferenceType()
        self.cache = dict( ( t.wire_name, t ) for t in ( self.data_object, self.managed_object, self.reference ) )

    def resolve ( self, name ) :
        if not name :
            raise UnknownType( "no type name given" )
        if name in self.cache :
            return self.cache[name]
        if name.startswith( ARRAY_PREFIX ) :
            kind = SequenceType( self.resolve( name[len( ARRAY_PREFIX ):] ), name )
        elif name.startswith( XSD_PREFIX ) :
            kind = self.resolve_primitive( name[len( XSD_PREFIX ):] )
        elif name.lower() in primitives :
            kind = primitives[name.lower()]
        elif ':' in name :
            kind = self.resolve( name.split( ':', 1 )[1] )
        else :
            kind = self.resolve_registered( name )
        self.cache[name] = kind
        return kind

    def resolve_primitive ( self, name ) :
        try :
            return primitives[name.lower()]
        except KeyError :
            raise UnsupportedPrimitive( "no such xsd type %r" % name )

    def resolve_registered ( self, name ) :
        desc = self.registry.lookup( name )
        if desc is None :
            raise UnknownType( "unknown type %r" % name )
        category = desc.get( 'category' )
        if category == STRUCT :
            parent = self.resolve_parent( name, desc, STRUCT ) or self.data_object
            return StructType( name, parent, desc.get( 'properties', () ) )
        if category == ENUM :
            return EnumType( name, desc.get( 'values', () ) )
        if category == HANDLE :
            parent = self.resolve_parent( name, desc, HANDLE ) or self.managed_object
            return HandleType( name, parent, desc.get( 'methods' ) )
        if category == REFERENCE :
            return self.reference
        raise UnsupportedCategory( "type %r has unsupported category %r" % ( name, category ) )

    def resolve_parent ( self, name, desc, category ) :
        r"""The runtime type of ``desc``'s parent, or None if it names none.  A parent
        of another category, or a chain leading back to ``name``, is a schema defect
        and raises ValueError."""
        if not desc.get( 'parent' ) :
            return None
        seen, ancestor = set( [ name ] ), desc
        while ancestor and ancestor.get( 'parent' ) :
            if ancestor['parent'] in seen :
                raise ValueError( "cyclic parent chain through %r" % name )
            seen.add( ancestor['parent'] )
            ancestor = self.registry.lookup( ancestor['parent'] )
        parent = self.resolve( desc['parent'] )
        if parent.category != category :
            raise ValueError( "%s %r cannot have %s %r as parent" % ( category, name, parent.category, parent.wire_name ) )
        return parent

    def __call__ ( self, name ) :
        return self.resolve( name )

def localname ( tag ) :
    r"""Strip the ``{namespace}`` part of an ElementTree tag or attribute name."""
    return tag.rsplit( '}', 1 )[-1]
