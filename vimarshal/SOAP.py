#    vimarshal/SOAP.py - remote calls over SOAP for vimarshal.
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
r"""vimarshal/SOAP.py performs remote operations: it encodes the arguments of a call
with :class:`vimarshal.XML.Encoder`, hands the request body to a transport, detects
SOAP faults and decodes the result with :class:`vimarshal.XML.Decoder`.

A *call descriptor* describes one remote operation::

    { 'params' : [ { 'name' : 'userName', 'wire_type' : 'xsd:string' }, ... ],
      'result' : { 'wire_type' : 'UserSession' } }

``result`` may be missing (the operation returns nothing).  Parameters that the caller
does not supply are omitted from the request; this is how optional arguments work.

A transport is any object with a ``request( body, action )`` method taking the
operation element and returning the response element (the first child of the SOAP
``Body``).  :class:`HTTPTransport` is the default one.

Example::

    vim = connect( 'vcenter.example.com', user = 'root', password = 'secret' )
    print( vim.root_folder.CreateFolder( name = 'new' ) )
"""
import http.cookiejar
from logging import getLogger
import os
import ssl
import threading
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET

from vimarshal import NS_XSD, ARRAY_PREFIX, TypeRegistry, TypeResolver, RemoteFault, TransportError, localname
from vimarshal.XML import Encoder, Decoder, tostring

__all__ = [ 'Connection', 'HTTPTransport', 'connect', 'envelope', 'find_fault' ]

log = getLogger( __name__ )

NS_SOAPENV = 'http://schemas.xmlsoap.org/soap/envelope/'
NS_VIM = 'urn:vim25'
SOAP_ACTION = 'urn:vim25/4.0'

ET.register_namespace( 'soapenv', NS_SOAPENV )

def _wire_type ( desc ) :
    return desc.get( 'wire_type' ) or desc.get( 'wsdl_type' )

def find_fault ( response ) :
    r"""Return ``( code, message, detail )`` if ``response`` contains a SOAP fault,
    otherwise None."""
    found = {}
    for e in response.iter() :
        tag = localname( e.tag )
        if tag in ( 'faultcode', 'faultstring', 'detail' ) and tag not in found :
            found[tag] = e
    if 'faultcode' not in found :
        return None
    code = found['faultcode'].text or ''
    message = found['faultstring'].text or '' if 'faultstring' in found else ''
    return code, message, found.get( 'detail' )

class Connection ( object ) :
    r"""Binds a transport to a type system.  Handles for well-known managed objects
    (``service_content``, ``root_folder``, ``property_collector``) are filled by
    :meth:`initialize`, once per connection."""
    def __init__ ( self, transport, types, debug = False ) :
        self.transport = transport
        self.types = types if isinstance( types, TypeResolver ) else TypeResolver( types )
        self.debug = debug
        self.encoder = Encoder( self.types )
        self.decoder = Decoder( self.types, self )
        self._init_lock = threading.Lock()
        self._service_content = None

    def service_instance ( self ) :
        return self.types.resolve( 'ServiceInstance' )( self, 'ServiceInstance' )

    def initialize ( self ) :
        r"""Fetch the service content.  Safe to call more than once; only the first call
        goes to the server."""
        with self._init_lock :
            if self._service_content is None :
                self._service_content = self.service_instance().RetrieveServiceContent()
        return self._service_content

    @property
    def service_content ( self ) :
        if self._service_content is None :
            raise RuntimeError( "connection not initialized; call initialize() first" )
        return self._service_content

    @property
    def root_folder ( self ) :
        return self.service_content.rootFolder

    @property
    def property_collector ( self ) :
        return self.service_content.propertyCollector

    def build_request ( self, method, desc, args ) :
        body = ET.Element( method, xmlns = NS_VIM )
        self.encoder.encode( args['_this'], 'ManagedObject', '_this', parent = body )
        for param in desc.get( 'params', () ) :
            name = param['name']
            if name not in args :
                continue
            self.encoder.encode( args[name], _wire_type( param ), name, parent = body )
        return body

    def call ( self, method, desc, args ) :
        if not isinstance( args, dict ) or '_this' not in args :
            raise TypeError( "call arguments must be a dict including '_this'" )
        if not isinstance( desc, dict ) :
            raise TypeError( "call descriptor must be a dict" )
        log.debug( "calling %s on %r", method, args['_this'] )
        body = self.build_request( method, desc, args )
        if self.debug :
            log.debug( "request: %s", tostring( body ) )
        resp = self.transport.request( body, SOAP_ACTION )
        if self.debug :
            log.debug( "response: %s", tostring( resp ) )
        fault = find_fault( resp )
        if fault :
            raise RemoteFault( *fault )
        rtype = _wire_type( desc['result'] ) if desc.get( 'result' ) else None
        if not rtype :
            return None
        if rtype.startswith( ARRAY_PREFIX ) :
            return self.decoder.decode( resp, rtype )
        children = list( resp )
        if not children :
            return None
        return self.decoder.decode( children[0], rtype )

def envelope ( body ) :
    r"""Wrap the operation element ``body`` in a SOAP envelope."""
    env = ET.Element( '{%s}Envelope' % NS_SOAPENV )
    env.set( 'xmlns:xsd', NS_XSD )
    ET.SubElement( env, '{%s}Body' % NS_SOAPENV ).append( body )
    return env

class HTTPTransport ( object ) :
    r"""POSTs SOAP envelopes with :mod:`urllib.request`.  Session cookies are kept for
    the life of the transport."""
    def __init__ ( self, host, port = None, ssl = True, path = '/sdk', insecure = False, timeout = None ) :
        port = port or ( 443 if ssl else 80 )
        self.url = "%s://%s:%d%s" % ( 'https' if ssl else 'http', host, port, path )
        self.timeout = timeout
        handlers = [ urllib.request.HTTPCookieProcessor( http.cookiejar.CookieJar() ) ]
        if ssl and insecure :
            handlers.append( urllib.request.HTTPSHandler( context = _insecure_context() ) )
        self.opener = urllib.request.build_opener( *handlers )

    def request ( self, body, action ) :
        data = tostring( envelope( body ) ).encode( 'utf-8' )
        req = urllib.request.Request( self.url, data = data, method = 'POST', headers = {
            'Content-Type' : 'text/xml; charset=utf-8', 'SOAPAction' : '"%s"' % action } )
        try :
            with self.opener.open( req, timeout = self.timeout ) as resp :
                text = resp.read()
        except urllib.error.HTTPError as e :
            # SOAP faults come back as 500 with an envelope.
            text = e.read()
            if not text :
                raise TransportError( "HTTP %d from %s" % ( e.code, self.url ) )
        except urllib.error.URLError as e :
            raise TransportError( "cannot reach %s: %s" % ( self.url, e.reason ) )
        return self.parse( text )

    def parse ( self, text ) :
        try :
            env = ET.fromstring( text )
        except ET.ParseError as e :
            raise TransportError( "malformed response from %s: %s" % ( self.url, e ) )
        body = env.find( '{%s}Body' % NS_SOAPENV )
        if body is None or len( body ) == 0 :
            raise TransportError( "no SOAP body in response from %s" % self.url )
        return body[0]

def _insecure_context () :
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context

def connect ( host, user = 'root', password = '', ssl = True, port = None, path = '/sdk'
        , debug = None, insecure = False, timeout = None, registry = None ) :
    r"""Open a connection to ``host`` and log in.

    ``debug`` defaults to whether the ``VIMARSHAL_DEBUG`` environment variable is set to
    a non-empty value.  ``registry`` is a :class:`TypeRegistry` or the path of a JSON
    schema; it defaults to the file named by ``VIMARSHAL_SCHEMA``."""
    if not host :
        raise ValueError( "host option required" )
    if debug is None :
        debug = bool( os.environ.get( 'VIMARSHAL_DEBUG' ) )
    if registry is None :
        registry = os.environ.get( 'VIMARSHAL_SCHEMA' )
        if not registry :
            raise ValueError( "no schema given and VIMARSHAL_SCHEMA is not set" )
    if not isinstance( registry, TypeRegistry ) :
        registry = TypeRegistry.load( registry )
    transport = HTTPTransport( host, port, ssl, path, insecure, timeout )
    vim = Connection( transport, registry, debug = debug )
    content = vim.initialize()
    content.sessionManager.Login( userName = user, password = password )
    log.debug( "logged in to %s as %s", host, user )
    return vim
