#!/usr/bin/env python
#    vimarshaltest/typestest.py - test cases for the vimarshal type system
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
import datetime, os, tempfile, unittest

import simplejson as json

import vimarshal
from vimarshal import TypeRegistry, TypeResolver, SequenceType, Typed, category_of
from vimarshal import UnknownType, UnsupportedPrimitive, UnsupportedCategory, UnknownField, UnsupportedValue
import vimarshaltest

class ResolverTests ( vimarshaltest.VimTestCase ) :
    def testArrayOf ( self ) :
        """ArrayOf<X> resolves to a sequence of X"""
        for name in ( 'Description', 'ManagedObjectReference', 'Folder', 'VirtualMachinePowerState', 'String', 'xsd:int' ) :
            kind = self.t( 'ArrayOf' + name )
            assert kind == SequenceType( self.t( name ) )
            assert kind.inner is self.t( name )
            assert kind.category == 'sequence'

    def testNestedArrayOf ( self ) :
        kind = self.t( 'ArrayOfArrayOfInt' )
        assert kind.inner.inner is vimarshal.INTEGER

    def testPrimitivesCaseInsensitive ( self ) :
        """xsd primitive names are case-insensitive"""
        assert self.t( 'xsd:INT' ) is self.t( 'xsd:int' ) is vimarshal.INTEGER
        for name in ( 'long', 'short', 'byte', 'Long' ) :
            assert self.t( 'xsd:' + name ) is vimarshal.INTEGER
        assert self.t( 'xsd:dateTime' ) is self.t( 'xsd:DATETIME' ) is vimarshal.TIMESTAMP
        assert self.t( 'xsd:boolean' ) is vimarshal.BOOLEAN
        assert self.t( 'xsd:string' ) is vimarshal.STRING
        assert self.t( 'xsd:anyType' ).untyped

    def testBarePrimitiveNames ( self ) :
        assert self.t( 'string' ) is vimarshal.STRING
        assert self.t( 'Int' ) is vimarshal.INTEGER

    def testUnsupportedPrimitive ( self ) :
        self.assertRaises( UnsupportedPrimitive, self.t, 'xsd:float' )
        self.assertRaises( UnknownType, self.t, 'xsd:decimal' )

    def testUnknownType ( self ) :
        self.assertRaises( UnknownType, self.t, 'NoSuchThing' )
        self.assertRaises( UnknownType, self.t, 'ArrayOfNoSuchThing' )
        self.assertRaises( UnknownType, self.t, None )
        self.assertRaises( TypeError, self.t, 'NoSuchThing' )

    def testUnsupportedCategory ( self ) :
        self.assertRaises( UnsupportedCategory, self.t, 'Broken' )

    def testNamespacePrefixStripped ( self ) :
        assert self.t( 'vim25:Folder' ) is self.t( 'Folder' )

    def testCached ( self ) :
        assert self.t( 'Description' ) is self.t( 'Description' )
        assert self.types( 'Folder' ) is self.t( 'Folder' )

    def testBuiltins ( self ) :
        assert self.t( 'ManagedObject' ).is_supertype_of( self.t( 'Folder' ) )
        assert self.t( 'DataObject' ).is_supertype_of( self.t( 'ElementDescription' ) )
        assert self.t( 'ManagedObjectReference' ).category == 'reference'

    def testRegistryLoads ( self ) :
        """The registry can be loaded from a JSON document"""
        registry = TypeRegistry.loads( json.dumps( vimarshaltest.SCHEMA ) )
        assert len( registry ) == len( vimarshaltest.SCHEMA )
        assert 'Folder' in registry
        assert registry.lookup( 'Nope' ) is None
        kind = TypeResolver( registry ).resolve( 'ElementDescription' )
        assert [ d.name for d in kind.full_properties ] == [ 'dynamicType', 'label', 'summary', 'key' ]

    def testRegistryLoadFile ( self ) :
        with tempfile.TemporaryDirectory() as tmp :
            path = os.path.join( tmp, 'schema.json' )
            with open( path, 'w' ) as f :
                json.dump( vimarshaltest.SCHEMA, f )
            registry = TypeRegistry.load( path )
        assert TypeResolver( registry ).resolve( 'Folder' ).find_method( 'Rename_Task' ) is not None

class StructTests ( vimarshaltest.VimTestCase ) :
    def testInheritedProperties ( self ) :
        """Effective properties are the parent's followed by the type's own"""
        kind = self.t( 'ElementDescription' )
        assert [ d.name for d in kind.full_properties ] == [ 'dynamicType', 'label', 'summary', 'key' ]
        assert [ d.name for d in kind.properties ] == [ 'key' ]
        assert kind.find_property( 'label' ).declaring is self.t( 'Description' )
        assert kind.find_property( 'nope' ) is None

    def testSequenceProperty ( self ) :
        kind = self.t( 'VmSummary' )
        assert kind.find_property( 'tags' ).is_sequence
        assert not kind.find_property( 'name' ).is_sequence

    def testSubtyping ( self ) :
        assert self.t( 'Description' ).is_supertype_of( self.t( 'ElementDescription' ) )
        assert self.t( 'Description' ).is_supertype_of( self.t( 'Description' ) )
        assert not self.t( 'ElementDescription' ).is_supertype_of( self.t( 'Description' ) )
        assert self.t( 'ManagedEntity' ).is_supertype_of( self.t( 'Folder' ) )
        assert not self.t( 'Folder' ).is_supertype_of( self.t( 'VirtualMachine' ) )

    def testDuplicateProperty ( self ) :
        """A schema repeating an inherited property name is rejected"""
        schema = dict( vimarshaltest.SCHEMA )
        schema['Bad'] = vimarshaltest.struct( 'Description', label = 'xsd:string' )
        types = TypeResolver( TypeRegistry( schema ) )
        self.assertRaises( ValueError, types.resolve, 'Bad' )

    def testParentOfAnotherCategory ( self ) :
        """Structs inherit from structs only, and managed types from managed types"""
        schema = dict( vimarshaltest.SCHEMA )
        schema['FromEnum'] = vimarshaltest.struct( 'VirtualMachinePowerState', key = 'xsd:string' )
        schema['FromHandle'] = vimarshaltest.struct( 'Folder' )
        schema['FromPrimitive'] = vimarshaltest.struct( 'xsd:string' )
        schema['HandleFromStruct'] = { 'category' : 'handle', 'parent' : 'Description' }
        types = TypeResolver( TypeRegistry( schema ) )
        for name in ( 'FromEnum', 'FromHandle', 'FromPrimitive', 'HandleFromStruct' ) :
            self.assertRaises( ValueError, types.resolve, name )
        assert types.resolve( 'ElementDescription' ).parent is types.resolve( 'Description' )

    def testCyclicParents ( self ) :
        schema = dict( vimarshaltest.SCHEMA )
        schema['Ouroboros'] = vimarshaltest.struct( 'Ouroboros' )
        schema['Ping'] = vimarshaltest.struct( 'Pong' )
        schema['Pong'] = vimarshaltest.struct( 'Ping' )
        schema['Tail'] = vimarshaltest.struct( 'Ping' )
        schema['Spin'] = { 'category' : 'handle', 'parent' : 'Spin' }
        types = TypeResolver( TypeRegistry( schema ) )
        for name in ( 'Ouroboros', 'Ping', 'Pong', 'Tail', 'Spin' ) :
            self.assertRaises( ValueError, types.resolve, name )

    def testCategoryField ( self ) :
        """A property called category reads like any other"""
        kind = self.t( 'EventDescriptionEventDetail' )
        obj = kind( key = 'VmPoweredOnEvent', category = 'info' )
        assert obj.category == 'info'
        assert kind().category is None
        assert category_of( obj ) == 'struct'

    def testWsdlTypeAlias ( self ) :
        types = TypeResolver( TypeRegistry( { 'Old' : { 'category' : 'struct'
            , 'properties' : [ { 'name' : 'n', 'wsdl_type' : 'xsd:int' } ] } } ) )
        assert types.resolve( 'Old' ).find_property( 'n' ).wire_type == 'xsd:int'

    def testConstruction ( self ) :
        obj = self.t( 'Description' )( { 'label' : 'a' }, summary = 'b' )
        assert obj.label == 'a' and obj.summary == 'b'
        assert obj['label'] == 'a'
        assert 'summary' in obj and 'dynamicType' not in obj
        assert obj.dynamicType is None

    def testAbsentSequenceField ( self ) :
        obj = self.t( 'VmSummary' )( name = 'vm1' )
        assert obj.tags == []
        assert obj == self.t( 'VmSummary' )( name = 'vm1', tags = [] )
        self.assertRaises( AttributeError, getattr, obj, 'nope' )

    def testNoneFieldsDropped ( self ) :
        assert self.t( 'Description' )( label = None ) == self.t( 'Description' )()

    def testUnknownKeysRejected ( self ) :
        """Unknown keys are rejected like unknown XML fields"""
        self.assertRaises( UnknownField, self.t( 'Description' ), { 'label' : 'a', 'colour' : 'red' } )

    def testEquality ( self ) :
        a = self.t( 'Description' )( label = 'a' )
        assert a == self.t( 'Description' )( label = 'a' )
        assert a != self.t( 'Description' )( label = 'b' )
        assert a != self.t( 'ElementDescription' )( label = 'a' )

class ValueTests ( vimarshaltest.VimTestCase ) :
    def testEnumValue ( self ) :
        kind = self.t( 'VirtualMachinePowerState' )
        value = kind( 'poweredOn' )
        assert value == 'poweredOn'
        assert value._type is kind
        assert value.value == 'poweredOn'
        self.assertRaises( UnsupportedValue, kind, 'exploded' )

    def testHandle ( self ) :
        conn = vimarshaltest.FakeConnection()
        folder = self.handle( 'Folder', 'group-d1', conn )
        assert folder == self.handle( 'Folder', 'group-d1' )
        assert folder != self.handle( 'VirtualMachine', 'group-d1' )
        assert folder._connection is conn
        assert hash( folder ) == hash( self.handle( 'Folder', 'group-d1' ) )
        assert repr( folder ) == 'Folder("group-d1")'

    def testHandleMethods ( self ) :
        """Methods are looked up along the managed type's ancestry"""
        folder = self.handle( 'Folder', 'group-d1' )
        assert folder.CreateFolder.__name__ == 'CreateFolder'
        assert callable( folder.Rename_Task )
        self.assertRaises( AttributeError, getattr, folder, 'PowerOnVM_Task' )

    def testCategories ( self ) :
        assert category_of( 'a' ) == 'primitive'
        assert category_of( 1 ) == 'primitive'
        assert category_of( True ) == 'primitive'
        assert category_of( datetime.datetime( 2010, 1, 1 ) ) == 'primitive'
        assert category_of( [ 1 ] ) == 'sequence'
        assert category_of( { 'a' : 1 } ) == 'mapping'
        assert category_of( Typed( 'xsd:int', 1 ) ) == 'typed'
        assert category_of( self.t( 'Description' )() ) == 'struct'
        assert category_of( self.t( 'VirtualMachinePowerState' )( 'poweredOn' ) ) == 'enum'
        assert category_of( self.handle( 'Folder', 'f' ) ) == 'handle'
        assert category_of( 1.5 ) is None
        assert category_of( object() ) is None

if __name__ == "__main__":
    unittest.main()
