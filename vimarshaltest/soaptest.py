#!/usr/bin/env python
#    vimarshaltest/soaptest.py - test cases for vimarshal remote calls
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
from unittest import mock
import xml.etree.ElementTree as ET

from vimarshal import RemoteFault, MarshalError, TransportError, TypeMismatch
from vimarshal.SOAP import Connection, HTTPTransport, connect, envelope, find_fault, NS_SOAPENV, SOAP_ACTION
import vimarshal.SOAP
import vimarshaltest
from vimarshaltest import FakeTransport, SERVICE_CONTENT_RESPONSE, LOGIN_RESPONSE, FAULT_RESPONSE

class SOAPTestCase ( vimarshaltest.VimTestCase ) :
    def connection ( self, **responses ) :
        self.transport = FakeTransport( **responses )
        return Connection( self.transport, self.types )

    def sent ( self, n = -1 ) :
        return self.transport.requests[n][0]

class CallTests ( SOAPTestCase ) :
    def testRequestBody ( self ) :
        """The request holds _this first, then the parameters"""
        vim = self.connection( CreateFolder = '<CreateFolderResponse><returnval type="Folder">group-v3</returnval></CreateFolderResponse>' )
        folder = self.handle( 'Folder', 'group-d1', vim )
        result = folder.CreateFolder( name = 'new' )
        body = self.sent()
        assert body.tag == 'CreateFolder'
        assert body.get( 'xmlns' ) == 'urn:vim25'
        assert [ ( c.tag, c.text ) for c in body ] == [ ( '_this', 'group-d1' ), ( 'name', 'new' ) ]
        assert body[0].get( 'type' ) == 'Folder'
        assert self.transport.requests[0][1] == SOAP_ACTION
        assert result == self.handle( 'Folder', 'group-v3' )
        assert result._connection is vim

    def testParameterOrder ( self ) :
        """Parameters follow descriptor order; missing ones are omitted"""
        vim = self.connection( Login = LOGIN_RESPONSE )
        manager = self.handle( 'SessionManager', 'SessionManager', vim )
        session = manager.Login( password = 'secret', userName = 'root' )
        assert [ c.tag for c in self.sent() ] == [ '_this', 'userName', 'password' ]
        assert session == self.t( 'UserSession' )( key = '52b5', userName = 'root' )

    def testDirectCall ( self ) :
        vim = self.connection( Login = LOGIN_RESPONSE )
        desc = { 'params' : [ { 'name' : 'userName', 'wsdl_type' : 'xsd:string' } ], 'result' : { 'wsdl_type' : 'UserSession' } }
        manager = self.handle( 'SessionManager', 'SessionManager', vim )
        result = vim.call( 'Login', desc, { '_this' : manager, 'userName' : 'root', 'ignored' : 1 } )
        assert result.userName == 'root'
        assert [ c.tag for c in self.sent() ] == [ '_this', 'userName' ]

    def testFault ( self ) :
        """A fault is raised with its code and message, and nothing is decoded"""
        vim = self.connection( Login = FAULT_RESPONSE )
        desc = { 'params' : [], 'result' : { 'wire_type' : 'NoSuchType' } }
        manager = self.handle( 'SessionManager', 'SessionManager', vim )
        try :
            vim.call( 'Login', desc, { '_this' : manager } )
        except RemoteFault as fault :
            assert fault.code == 'ServerFaultCode'
            assert fault.message == 'bad login'
            assert fault.detail is not None and len( fault.detail ) == 1
            assert str( fault ) == 'ServerFaultCode: bad login'
            assert not isinstance( fault, MarshalError )
        else :
            self.fail( "fault not raised" )

    def testNoResultType ( self ) :
        """No declared result means no result, whatever the response holds"""
        vim = self.connection( Logout = LOGIN_RESPONSE )
        manager = self.handle( 'SessionManager', 'SessionManager', vim )
        assert manager.Logout() is None

    def testArrayResult ( self ) :
        vim = self.connection( ChildEntities = """<ChildEntitiesResponse xmlns="urn:vim25">
            <returnval type="Folder">group-v1</returnval>
            <returnval type="VirtualMachine">vm-7</returnval>
        </ChildEntitiesResponse>""" )
        result = self.handle( 'Folder', 'group-d1', vim ).ChildEntities()
        assert result == [ self.handle( 'Folder', 'group-v1' ), self.handle( 'VirtualMachine', 'vm-7' ) ]

    def testEmptyArrayResult ( self ) :
        vim = self.connection( ChildEntities = '<ChildEntitiesResponse xmlns="urn:vim25"/>' )
        assert self.handle( 'Folder', 'group-d1', vim ).ChildEntities() == []

    def testMissingSingleResult ( self ) :
        vim = self.connection( CreateFolder = '<CreateFolderResponse/>' )
        assert self.handle( 'Folder', 'group-d1', vim ).CreateFolder( name = 'x' ) is None

    def testPrimitiveResult ( self ) :
        vim = self.connection( CurrentTime = '<CurrentTimeResponse><returnval>2010-01-01T00:00:00Z</returnval></CurrentTimeResponse>' )
        now = vim.service_instance().CurrentTime()
        assert now == datetime.datetime( 2010, 1, 1, tzinfo = datetime.timezone.utc )

    def testArrayArgument ( self ) :
        vim = self.connection( MoveIntoFolder_Task = '<R><returnval type="Task">task-1</returnval></R>' )
        folder = self.handle( 'Folder', 'group-d1', vim )
        vms = [ self.handle( 'VirtualMachine', 'vm-1' ), self.handle( 'VirtualMachine', 'vm-2' ) ]
        # Task is not in the schema
        self.assertRaises( MarshalError, folder.MoveIntoFolder_Task, list = vms )
        assert [ ( c.tag, c.text ) for c in self.sent() ][1:] == [ ( 'list', 'vm-1' ), ( 'list', 'vm-2' ) ]

    def testArgumentMismatch ( self ) :
        vim = self.connection()
        folder = self.handle( 'Folder', 'group-d1', vim )
        self.assertRaises( TypeMismatch, folder.CreateFolder, name = 5 )
        assert self.transport.requests == []

    def testThisRequired ( self ) :
        vim = self.connection()
        self.assertRaises( TypeError, vim.call, 'Logout', { 'params' : [] }, {} )
        self.assertRaises( TypeError, vim.call, 'Logout', { 'params' : [] }, [] )
        self.assertRaises( TypeError, vim.call, 'Logout', None, { '_this' : self.handle( 'Folder', 'f' ) } )

    def testThisMustBeManagedObject ( self ) :
        vim = self.connection()
        self.assertRaises( TypeMismatch, vim.call, 'Logout', { 'params' : [] }, { '_this' : self.t( 'Description' )() } )

class InitializeTests ( SOAPTestCase ) :
    def testInitializeOnce ( self ) :
        """Connection-scoped handles are fetched exactly once"""
        vim = self.connection( RetrieveServiceContent = SERVICE_CONTENT_RESPONSE )
        content = vim.initialize()
        assert vim.initialize() is content
        assert self.transport.operations() == [ 'RetrieveServiceContent' ]
        assert self.sent()[0].text == 'ServiceInstance'
        assert self.sent()[0].get( 'type' ) == 'ServiceInstance'
        assert vim.root_folder == self.handle( 'Folder', 'group-d1' )
        assert vim.root_folder._connection is vim
        assert vim.property_collector == self.handle( 'PropertyCollector', 'propertyCollector' )
        assert vim.service_content is content

    def testNotInitialized ( self ) :
        vim = self.connection()
        self.assertRaises( RuntimeError, getattr, vim, 'root_folder' )

    def testConnect ( self ) :
        transport = FakeTransport( RetrieveServiceContent = SERVICE_CONTENT_RESPONSE, Login = LOGIN_RESPONSE )
        with mock.patch.object( vimarshal.SOAP, 'HTTPTransport', return_value = transport ) as factory :
            vim = connect( 'vc.example.com', password = 'pw', registry = self.registry, debug = True )
        factory.assert_called_once_with( 'vc.example.com', None, True, '/sdk', False, None )
        assert transport.operations() == [ 'RetrieveServiceContent', 'Login' ]
        login = transport.requests[1][0]
        assert [ ( c.tag, c.text ) for c in login ] == [ ( '_this', 'SessionManager' ), ( 'userName', 'root' ), ( 'password', 'pw' ) ]
        assert vim.debug

    def testConnectOptions ( self ) :
        self.assertRaises( ValueError, connect, '' )
        with mock.patch.dict( 'os.environ', { 'VIMARSHAL_SCHEMA' : '' } ) :
            self.assertRaises( ValueError, connect, 'vc.example.com' )

    def testDebugFromEnvironment ( self ) :
        transport = FakeTransport( RetrieveServiceContent = SERVICE_CONTENT_RESPONSE, Login = LOGIN_RESPONSE )
        with mock.patch.object( vimarshal.SOAP, 'HTTPTransport', return_value = transport ) :
            with mock.patch.dict( 'os.environ', { 'VIMARSHAL_DEBUG' : '' } ) :
                assert not connect( 'vc', registry = self.registry ).debug
            with mock.patch.dict( 'os.environ', { 'VIMARSHAL_DEBUG' : '1' } ) :
                assert connect( 'vc', registry = self.registry ).debug

class WireTests ( unittest.TestCase ) :
    def testFindFault ( self ) :
        assert find_fault( ET.fromstring( FAULT_RESPONSE ) )[:2] == ( 'ServerFaultCode', 'bad login' )
        assert find_fault( ET.fromstring( LOGIN_RESPONSE ) ) is None

    def testEnvelope ( self ) :
        env = envelope( ET.Element( 'Logout' ) )
        assert env.tag == '{%s}Envelope' % NS_SOAPENV
        assert env[0].tag == '{%s}Body' % NS_SOAPENV
        assert env[0][0].tag == 'Logout'
        assert b'soapenv:Envelope' in ET.tostring( env )

    def testTransportURL ( self ) :
        assert HTTPTransport( 'h' ).url == 'https://h:443/sdk'
        assert HTTPTransport( 'h', ssl = False ).url == 'http://h:80/sdk'
        assert HTTPTransport( 'h', 8443, path = '/api' ).url == 'https://h:8443/api'

    def testTransportParse ( self ) :
        transport = HTTPTransport( 'h', insecure = True )
        text = ET.tostring( envelope( ET.fromstring( LOGIN_RESPONSE ) ) )
        assert transport.parse( text ).tag == '{urn:vim25}LoginResponse'
        self.assertRaises( TransportError, transport.parse, b'<not xml' )
        self.assertRaises( TransportError, transport.parse, ET.tostring( ET.Element( '{%s}Envelope' % NS_SOAPENV ) ) )

    def testTransportCarriageReturns ( self ) :
        """Carriage returns in arguments are sent as character references"""
        transport = HTTPTransport( 'h' )
        reply = ET.tostring( envelope( ET.fromstring( LOGIN_RESPONSE ) ) )
        body = ET.Element( 'Login' )
        ET.SubElement( body, 'password' ).text = 'a\rb'
        with mock.patch.object( transport, 'opener' ) as opener :
            opener.open.return_value.__enter__.return_value.read.return_value = reply
            assert transport.request( body, SOAP_ACTION ).tag == '{urn:vim25}LoginResponse'
        data = opener.open.call_args[0][0].data
        assert b'<password>a&#13;b</password>' in data
        assert b'\r' not in data

if __name__ == "__main__":
    unittest.main()
