#!/usr/bin/env python
#    vimarshaltest/xmltest.py - test cases for vimarshal over XML
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
import datetime, unittest
import xml.etree.ElementTree as ET

from vimarshal import Typed, TypeMismatch, UnknownField, UnsupportedValue, AnyTypeDecodeUnsupported, UnknownType
from vimarshal import VimError, MarshalError, MalformedValue
from vimarshal.XML import Encoder, Decoder, XSI_TYPE, dumps, loads
import vimarshaltest
from vimarshaltest import XSI_DECL

class XMLTestCase ( vimarshaltest.VimTestCase ) :
    def setUp ( self ) :
        vimarshaltest.VimTestCase.setUp( self )
        self.connection = vimarshaltest.FakeConnection()
        self.encoder = Encoder( self.types )
        self.decoder = Decoder( self.types, self.connection )

    def encode ( self, value, wire_type, name = 'v', attrs = None ) :
        return self.encoder.encode( value, wire_type, name, attrs )

    def decode ( self, s, wire_type ) :
        return self.decoder.decode( ET.fromstring( s ), wire_type )

    def _perform ( self, value, wire_type ) :
        e = self.encode( value, wire_type )
        result = self.decoder.decode( ET.fromstring( ET.tostring( e ) ), wire_type )
        assert result == value, "%r != %r" % ( result, value )
        return result

    def summary ( self ) :
        t = self.t
        return t( 'VmSummary' )(
            name = 'vm & <one>',
            numCpu = 4,
            template = False,
            bootTime = datetime.datetime( 2010, 5, 1, 12, 30, tzinfo = datetime.timezone.utc ),
            powerState = t( 'VirtualMachinePowerState' )( 'poweredOn' ),
            tags = [ 'web', 'prod' ],
            host = self.handle( 'HostSystem', 'host-12' ),
            description = t( 'ElementDescription' )( label = 'l', summary = 's', key = 'k' ),
            devices = [ t( 'Description' )( label = 'disk' ), t( 'ElementDescription' )( key = 'nic' ) ],
            extraConfig = [ t( 'OptionValue' )( key = 'a', value = Typed( 'xsd:string', 'b' ) ) ] )

class RoundTripTests ( XMLTestCase ) :
    def testStruct ( self ) :
        """Test a struct with every kind of field"""
        value = self.summary()
        result = self.decode( ET.tostring( self.encode( value, 'VmSummary' ) ), 'VmSummary' )
        # the typed payload decodes to its plain value
        assert result.extraConfig[0].value == 'b'
        assert result.name == value.name
        assert result.numCpu == 4 and result.template is False
        assert result.bootTime == value.bootTime
        assert result.powerState == 'poweredOn'
        assert result.tags == [ 'web', 'prod' ]
        assert result.host == value.host and result.host._connection is self.connection
        assert result.description == value.description
        assert result.devices == value.devices
        assert result.devices[1]._type is self.t( 'ElementDescription' )

    def testStructWithoutUntypedFields ( self ) :
        value = self.summary()
        del value._props['extraConfig']
        self._perform( value, 'VmSummary' )

    def testSubtypeInParentSlot ( self ) :
        self._perform( self.t( 'ElementDescription' )( key = 'k' ), 'Description' )

    def testPrimitives ( self ) :
        self._perform( 'text', 'xsd:string' )
        self._perform( '', 'xsd:string' )
        self._perform( -42, 'xsd:long' )
        self._perform( True, 'xsd:boolean' )
        self._perform( False, 'xsd:boolean' )
        self._perform( datetime.datetime( 2001, 2, 3, 4, 5, 6, tzinfo = datetime.timezone.utc ), 'xsd:dateTime' )

    def testHandle ( self ) :
        self._perform( self.handle( 'Folder', 'group-d1' ), 'ManagedObjectReference' )
        self._perform( self.handle( 'Folder', 'group-d1' ), 'Folder' )

    def testEnum ( self ) :
        self._perform( self.t( 'VirtualMachinePowerState' )( 'suspended' ), 'VirtualMachinePowerState' )

    def testStrings ( self ) :
        s = dumps( self.types, self.t( 'Description' )( label = 'x' ), 'Description', 'd' )
        assert loads( self.types, s, 'Description' ) == self.t( 'Description' )( label = 'x' )

    def testCarriageReturns ( self ) :
        """Carriage returns survive the trip instead of turning into newlines"""
        s = dumps( self.types, 'a\rb\r\n', 'xsd:string', 's' )
        assert '\r' not in s
        assert loads( self.types, s, 'xsd:string' ) == 'a\rb\r\n'
        value = self.t( 'Description' )( label = 'one\rtwo' )
        assert loads( self.types, dumps( self.types, value, 'Description', 'd' ), 'Description' ) == value

    def testCategoryField ( self ) :
        self._perform( self.t( 'EventDescriptionEventDetail' )( key = 'k', category = 'warning' ), 'EventDescriptionEventDetail' )

class EncoderTests ( XMLTestCase ) :
    def testStructElement ( self ) :
        """Structs always carry xsi:type and emit fields in schema order"""
        e = self.encode( self.t( 'ElementDescription' )( key = 'k', label = 'l' ), 'Description', 'desc' )
        assert e.tag == 'desc'
        assert e.get( XSI_TYPE ) == 'ElementDescription'
        assert [ c.tag for c in e ] == [ 'label', 'key' ]
        assert [ c.text for c in e ] == [ 'l', 'k' ]

    def testXsiPrefix ( self ) :
        s = ET.tostring( self.encode( self.t( 'Description' )(), 'Description', 'desc' ), encoding = 'unicode' )
        assert 'xsi:type="Description"' in s

    def testAbsentFieldsSkipped ( self ) :
        e = self.encode( self.t( 'VmSummary' )( name = 'a', tags = [] ), 'VmSummary' )
        assert [ c.tag for c in e ] == [ 'name' ]

    def testSupertypeRequired ( self ) :
        """Encoding a struct into a slot of one of its subtypes fails"""
        self.assertRaises( TypeMismatch, self.encode, self.t( 'Description' )(), 'ElementDescription' )
        self.assertRaises( TypeMismatch, self.encode, self.t( 'Description' )(), 'OptionValue' )
        self.encode( self.t( 'ElementDescription' )(), 'DynamicData' )
        self.encode( self.t( 'ElementDescription' )(), 'DataObject' )

    def testHandleElement ( self ) :
        e = self.encode( self.handle( 'Folder', 'group-d1' ), 'ManagedObjectReference', 'folder' )
        assert e.text == 'group-d1'
        assert e.get( 'type' ) == 'Folder'
        assert e.get( XSI_TYPE ) is None

    def testHandleSupertype ( self ) :
        vm = self.handle( 'VirtualMachine', 'vm-1' )
        self.encode( vm, 'ManagedObject' )
        self.encode( vm, 'ManagedEntity' )
        self.encode( vm, 'VirtualMachine' )
        self.assertRaises( TypeMismatch, self.encode, vm, 'Folder' )
        self.assertRaises( TypeMismatch, self.encode, vm, 'Description' )

    def testEnumExact ( self ) :
        """Enums only fit their own type"""
        on = self.t( 'VirtualMachinePowerState' )( 'poweredOn' )
        assert self.encode( on, 'VirtualMachinePowerState' ).text == 'poweredOn'
        self.assertRaises( TypeMismatch, self.encode, on, 'HostSystemPowerState' )
        self.assertRaises( TypeMismatch, self.encode, on, 'xsd:string' )

    def testStringIntoEnumSlot ( self ) :
        assert self.encode( 'poweredOff', 'VirtualMachinePowerState' ).text == 'poweredOff'
        self.assertRaises( TypeMismatch, self.encode, 'exploded', 'VirtualMachinePowerState' )

    def testMappingCoerced ( self ) :
        """Mappings become instances of the expected struct type"""
        e = self.encode( { 'label' : 'l', 'summary' : 's' }, 'Description' )
        assert e.get( XSI_TYPE ) == 'Description'
        assert [ c.tag for c in e ] == [ 'label', 'summary' ]

    def testNestedMapping ( self ) :
        e = self.encode( { 'name' : 'vm', 'description' : { 'label' : 'l' } }, 'VmSummary' )
        assert e.find( 'description' ).get( XSI_TYPE ) == 'Description'

    def testMappingUnknownKey ( self ) :
        self.assertRaises( UnknownField, self.encode, { 'label' : 'l', 'colour' : 'red' }, 'Description' )

    def testMappingWithoutStructType ( self ) :
        self.assertRaises( UnsupportedValue, self.encode, { 'label' : 'l' }, None )
        self.assertRaises( UnsupportedValue, self.encode, { 'label' : 'l' }, 'xsd:string' )

    def testSequence ( self ) :
        """Sequences are repeated siblings sharing the element name"""
        parent = ET.Element( 'p' )
        self.encoder.encode( [ 'a', 'b', 'c' ], 'ArrayOfString', 'tags', parent = parent )
        assert [ ( c.tag, c.text ) for c in parent ] == [ ( 'tags', 'a' ), ( 'tags', 'b' ), ( 'tags', 'c' ) ]
        elements = self.encode( [ 1, 2 ], 'ArrayOfInt', 'n' )
        assert [ e.text for e in elements ] == [ '1', '2' ]

    def testSequenceMismatch ( self ) :
        self.assertRaises( TypeMismatch, self.encode, [ 'a' ], 'xsd:string' )
        self.assertRaises( TypeMismatch, self.encode, [ 'a' ], None )
        self.assertRaises( TypeMismatch, self.encode, 'a', 'ArrayOfString' )
        self.assertRaises( TypeMismatch, self.encode, [ 1 ], 'ArrayOfString' )

    def testPrimitiveText ( self ) :
        assert self.encode( True, 'xsd:boolean' ).text == 'true'
        assert self.encode( False, 'xsd:boolean' ).text == 'false'
        assert self.encode( 12, 'xsd:int' ).text == '12'
        assert self.encode( datetime.datetime( 2010, 1, 2, 3, 4, 5 ), 'xsd:dateTime' ).text == '2010-01-02T03:04:05'
        assert self.encode( 'x', None ).text == 'x'

    def testPrimitiveMismatch ( self ) :
        self.assertRaises( TypeMismatch, self.encode, 'x', 'xsd:int' )
        self.assertRaises( TypeMismatch, self.encode, True, 'xsd:int' )
        self.assertRaises( TypeMismatch, self.encode, 1, 'xsd:boolean' )
        self.assertRaises( TypeMismatch, self.encode, 'x', 'Description' )
        self.assertRaises( TypeMismatch, self.encode, 'vm-1', 'ManagedObjectReference' )

    def testTyped ( self ) :
        """Typed values force the xsi:type attribute"""
        e = self.encode( Typed( 'xsd:int', 5 ), 'xsd:anyType' )
        assert e.get( XSI_TYPE ) == 'xsd:int'
        assert e.text == '5'
        e = self.encode( self.t( 'OptionValue' )( key = 'k', value = Typed( 'xsd:boolean', True ) ), 'OptionValue' )
        assert e.find( 'value' ).get( XSI_TYPE ) == 'xsd:boolean'

    def testBareScalarInAnyTypeSlot ( self ) :
        self.assertRaises( TypeMismatch, self.encode, 5, 'xsd:anyType' )
        self.assertRaises( TypeMismatch, self.encode, self.t( 'OptionValue' )( value = 'x' ), 'OptionValue' )

    def testStructInAnyTypeSlot ( self ) :
        e = self.encode( self.t( 'Description' )( label = 'x' ), 'xsd:anyType' )
        assert e.get( XSI_TYPE ) == 'Description'

    def testExtraAttributes ( self ) :
        e = self.encode( 'x', 'xsd:string', 'v', { 'id' : '7' } )
        assert e.get( 'id' ) == '7'
        e = self.encode( self.handle( 'Folder', 'f' ), 'Folder', 'v', { 'id' : '8' } )
        assert e.get( 'id' ) == '8' and e.get( 'type' ) == 'Folder'

    def testUnsupportedValue ( self ) :
        self.assertRaises( UnsupportedValue, self.encode, 1.5, 'xsd:string' )
        self.assertRaises( UnsupportedValue, self.encode, object(), None )
        self.assertRaises( UnsupportedValue, self.encode, None, 'xsd:string' )

class DecoderTests ( XMLTestCase ) :
    def testUnknownField ( self ) :
        """A child with no matching property is an error"""
        self.assertRaises( UnknownField, self.decode, '<d><label>x</label><colour>red</colour></d>', 'Description' )

    def testRepeatedChildren ( self ) :
        """Repeated children of a sequence field accumulate in document order"""
        result = self.decode( '<s><name>vm</name><tags>b</tags><numCpu>2</numCpu><tags>a</tags></s>', 'VmSummary' )
        assert result.tags == [ 'b', 'a' ]
        assert result.numCpu == 2

    def testAbsentFields ( self ) :
        result = self.decode( '<s><name>vm</name></s>', 'VmSummary' )
        assert 'tags' not in result and 'numCpu' not in result
        assert result.numCpu is None

    def testXsiTypeOverridesStatic ( self ) :
        result = self.decode( '<d %s xsi:type="ElementDescription"><key>k</key></d>' % XSI_DECL, 'Description' )
        assert result._type is self.t( 'ElementDescription' )
        assert result.key == 'k'

    def testXsiTypePrimitive ( self ) :
        assert self.decode( '<v %s xsi:type="xsd:int">7</v>' % XSI_DECL, 'xsd:anyType' ) == 7
        assert self.decode( '<v %s xsi:type="xsd:string">7</v>' % XSI_DECL, None ) == '7'

    def testAnyType ( self ) :
        """An untyped element cannot be decoded"""
        self.assertRaises( AnyTypeDecodeUnsupported, self.decode, '<v>5</v>', 'xsd:anyType' )
        self.assertRaises( AnyTypeDecodeUnsupported, self.decode, '<o><key>k</key><value>5</value></o>', 'OptionValue' )

    def testNoType ( self ) :
        self.assertRaises( UnknownType, self.decode, '<v>5</v>', None )

    def testBoolean ( self ) :
        for text, expected in ( ( 'true', True ), ( '1', True ), ( 'false', False ), ( '0', False ), ( 'True', False ), ( '', False ) ) :
            assert self.decode( '<b>%s</b>' % text, 'xsd:boolean' ) is expected, text

    def testIntegers ( self ) :
        for name in ( 'xsd:int', 'xsd:long', 'xsd:short', 'xsd:byte' ) :
            assert self.decode( '<n>-17</n>', name ) == -17
        self.assertRaises( ValueError, self.decode, '<n>x</n>', 'xsd:int' )

    def testMalformedInteger ( self ) :
        """Unreadable integers are marshalling errors, not bare ValueErrors"""
        for text in ( '<n/>', '<n>x</n>', '<n>1.5</n>' ) :
            self.assertRaises( MalformedValue, self.decode, text, 'xsd:int' )
            self.assertRaises( MarshalError, self.decode, text, 'xsd:long' )
        self.assertRaises( VimError, self.decode, '<v><numCpu>many</numCpu></v>', 'VmSummary' )

    def testTimestamp ( self ) :
        result = self.decode( '<t>2010-05-01T12:30:00.250Z</t>', 'xsd:dateTime' )
        assert result == datetime.datetime( 2010, 5, 1, 12, 30, 0, 250000, tzinfo = datetime.timezone.utc )
        result = self.decode( '<t>2010-05-01T12:30:00+02:00</t>', 'xsd:dateTime' )
        assert result.utcoffset() == datetime.timedelta( hours = 2 )

    def testMalformedTimestamp ( self ) :
        self.assertRaises( MalformedValue, self.decode, '<t>yesterday</t>', 'xsd:dateTime' )
        self.assertRaises( VimError, self.decode, '<t/>', 'xsd:dateTime' )
        self.assertRaises( ValueError, self.decode, '<t>2010-13-01T00:00:00Z</t>', 'xsd:dateTime' )

    def testEnumRaw ( self ) :
        result = self.decode( '<p>poweredOff</p>', 'VirtualMachinePowerState' )
        assert result == 'poweredOff' and type( result ) is str

    def testEmptyString ( self ) :
        assert self.decode( '<s/>', 'xsd:string' ) == ''

    def testReference ( self ) :
        """References become handles of the type named by the type attribute"""
        result = self.decode( '<host type="HostSystem">host-1</host>', 'ManagedObjectReference' )
        assert result._type is self.t( 'HostSystem' )
        assert result._ref == 'host-1'
        assert result._connection is self.connection

    def testHandleStatic ( self ) :
        result = self.decode( '<f>group-d1</f>', 'Folder' )
        assert result == self.handle( 'Folder', 'group-d1' )

    def testSequence ( self ) :
        result = self.decode( '<r>\n  <x>1</x>\n  <x>2</x>\n</r>', 'ArrayOfInt' )
        assert result == [ 1, 2 ]
        result = self.decode( '<r><x type="Folder">a</x><x type="VirtualMachine">b</x></r>', 'ArrayOfManagedObjectReference' )
        assert result == [ self.handle( 'Folder', 'a' ), self.handle( 'VirtualMachine', 'b' ) ]

    def testSequenceOfPolymorphicStructs ( self ) :
        result = self.decode( '<r %s><d xsi:type="ElementDescription"><key>k</key></d><d><label>l</label></d></r>' % XSI_DECL
            , 'ArrayOfDescription' )
        assert [ d._type.wire_name for d in result ] == [ 'ElementDescription', 'Description' ]

    def testNamespacedTags ( self ) :
        result = self.decode( '<d xmlns="urn:vim25"><label>x</label></d>', 'Description' )
        assert result.label == 'x'

if __name__ == "__main__":
    unittest.main()
