import unittest
import xml.etree.ElementTree as ET

import vimarshal
from vimarshal import TypeRegistry, TypeResolver

def struct ( parent, **props ) :
    return { 'category' : 'struct', 'parent' : parent
        , 'properties' : [ { 'name' : k, 'wire_type' : v } for k, v in props.items() ] }

def method ( result = None, **params ) :
    desc = { 'params' : [ { 'name' : k, 'wire_type' : v } for k, v in params.items() ] }
    if result :
        desc['result'] = { 'wire_type' : result }
    return desc

# a small slice of a VIM-like schema.  keyword order is declaration order.
SCHEMA = {
    'ManagedObjectReference' : { 'category' : 'reference' },
    'DynamicData' : struct( None, dynamicType = 'xsd:string' ),
    'Description' : struct( 'DynamicData', label = 'xsd:string', summary = 'xsd:string' ),
    'ElementDescription' : struct( 'Description', key = 'xsd:string' ),
    'OptionValue' : struct( 'DynamicData', key = 'xsd:string', value = 'xsd:anyType' ),
    'VirtualMachinePowerState' : { 'category' : 'enum', 'values' : [ 'poweredOff', 'poweredOn', 'suspended' ] },
    'HostSystemPowerState' : { 'category' : 'enum', 'values' : [ 'poweredOff', 'poweredOn', 'standBy' ] },
    'VmSummary' : struct( 'DynamicData', name = 'xsd:string', numCpu = 'xsd:int', template = 'xsd:boolean'
        , bootTime = 'xsd:dateTime', powerState = 'VirtualMachinePowerState', tags = 'ArrayOfString'
        , host = 'ManagedObjectReference', description = 'Description', devices = 'ArrayOfDescription'
        , extraConfig = 'ArrayOfOptionValue' ),
    'ServiceContent' : struct( 'DynamicData', rootFolder = 'ManagedObjectReference'
        , propertyCollector = 'ManagedObjectReference', sessionManager = 'ManagedObjectReference' ),
    'UserSession' : struct( 'DynamicData', key = 'xsd:string', userName = 'xsd:string' ),
    'EventDescriptionEventDetail' : struct( 'DynamicData', key = 'xsd:string', category = 'xsd:string' ),
    'ServiceInstance' : { 'category' : 'handle', 'methods' : {
        'RetrieveServiceContent' : method( 'ServiceContent' ),
        'CurrentTime' : method( 'xsd:dateTime' ) } },
    'SessionManager' : { 'category' : 'handle', 'methods' : {
        'Login' : method( 'UserSession', userName = 'xsd:string', password = 'xsd:string', locale = 'xsd:string' ),
        'Logout' : method() } },
    'PropertyCollector' : { 'category' : 'handle' },
    'ManagedEntity' : { 'category' : 'handle', 'methods' : {
        'Rename_Task' : method( 'ManagedObjectReference', newName = 'xsd:string' ) } },
    'Folder' : { 'category' : 'handle', 'parent' : 'ManagedEntity', 'methods' : {
        'CreateFolder' : method( 'ManagedObjectReference', name = 'xsd:string' ),
        'MoveIntoFolder_Task' : method( 'ManagedObjectReference', list = 'ArrayOfManagedObjectReference' ),
        'ChildEntities' : method( 'ArrayOfManagedObjectReference' ) } },
    'VirtualMachine' : { 'category' : 'handle', 'parent' : 'ManagedEntity' },
    'HostSystem' : { 'category' : 'handle', 'parent' : 'ManagedEntity' },
    'Broken' : { 'category' : 'widget' },
}

XSI_DECL = 'xmlns:xsi="%s"' % vimarshal.NS_XSI

SERVICE_CONTENT_RESPONSE = """<RetrieveServiceContentResponse xmlns="urn:vim25"><returnval>
    <rootFolder type="Folder">group-d1</rootFolder>
    <propertyCollector type="PropertyCollector">propertyCollector</propertyCollector>
    <sessionManager type="SessionManager">SessionManager</sessionManager>
</returnval></RetrieveServiceContentResponse>"""

LOGIN_RESPONSE = """<LoginResponse xmlns="urn:vim25"><returnval>
    <key>52b5</key><userName>root</userName>
</returnval></LoginResponse>"""

FAULT_RESPONSE = """<soapenv:Fault xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/">
    <faultcode>ServerFaultCode</faultcode>
    <faultstring>bad login</faultstring>
    <detail><InvalidLoginFault xmlns="urn:vim25" %s xsi:type="InvalidLogin"/></detail>
</soapenv:Fault>""" % XSI_DECL

class FakeTransport ( object ) :
    r"""Answers requests from canned XML keyed by operation name."""
    def __init__ ( self, **responses ) :
        self.responses = responses
        self.requests = []

    def request ( self, body, action ) :
        self.requests.append( ( body, action ) )
        return ET.fromstring( self.responses[body.tag] )

    def operations ( self ) :
        return [ body.tag for body, action in self.requests ]

class FakeConnection ( object ) :
    pass

class VimTestCase ( unittest.TestCase ) :
    def setUp ( self ) :
        self.registry = TypeRegistry( SCHEMA )
        self.types = TypeResolver( self.registry )

    def t ( self, name ) :
        return self.types.resolve( name )

    def handle ( self, kind, ref, connection = None ) :
        return self.t( kind )( connection, ref )
