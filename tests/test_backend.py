import unittest, sys
from unittest import mock
sys.path.append('.')
import requests
from docker.errors import APIError, NotFound
from drydock import backend, resources, utils
from drydock.exceptions import ProviderError, NotFoundError

utils.setQuiet(True)

def setupContainer():
  c = resources.Container('test', {
    'image': 'consul:v1.6.1',
    'env': {'TEST': 'true'},
    'networks': [
      {'name': 'network.testnet', 'ip_address': '10.6.0.200', 'aliases': ['alias1', 'alias2']},
    ],
    'volumes': [
      {'source': '/tmp/data', 'destination': '/data'},
    ],
    'ports': [
      {'local': 8080, 'host': 9080, 'protocol': 'tcp'},
      {'local': 8081},
    ],
  })
  return c

def setupBackend():
  client = mock.Mock()
  client.create_container.return_value = {'Id': 'test'}
  client.images.return_value = []
  client.pull.return_value = iter([{'status': 'Downloading'}])
  return backend.DockerBackend(client), client

class TestCreateContainer(unittest.TestCase):
  def testCreatesContainerWithValidConfig(self):
    b, client = setupBackend()
    c = setupContainer()

    container_id = b.create_container(c)

    self.assertEqual(container_id, 'test')
    args, kwargs = client.create_container.call_args
    self.assertEqual(args[0], 'consul:v1.6.1')
    self.assertEqual(kwargs['name'], 'test.container.drydock.run')
    self.assertEqual(kwargs['hostname'], 'test')
    self.assertEqual(kwargs['environment'], ['TEST=true'])
    self.assertEqual(kwargs['labels']['drydock.type'], 'container')
    self.assertEqual(kwargs['labels']['drydock.reference'], 'container.test')
    client.start.assert_called_once_with('test')

  def testRemovesDefaultBridgeAndAttachesNetworks(self):
    b, client = setupBackend()
    c = setupContainer()

    b.create_container(c, 'wan')

    client.disconnect_container_from_network.assert_called_once_with('test', 'bridge')
    self.assertEqual(client.connect_container_to_network.call_args_list, [
      mock.call('test', 'testnet', ipv4_address='10.6.0.200', aliases=['alias1', 'alias2']),
      mock.call('test', 'wan'),
    ])

  def testOnlyAttachesWanWithoutUserNetworks(self):
    b, client = setupBackend()
    c = setupContainer()
    c.networks = []

    b.create_container(c, 'wan')

    client.connect_container_to_network.assert_called_once_with('test', 'wan')

  def testNoNetworksKeepsDefaultBridge(self):
    b, client = setupBackend()
    c = setupContainer()
    c.networks = []

    b.create_container(c)

    client.disconnect_container_from_network.assert_not_called()
    client.connect_container_to_network.assert_not_called()
    client.start.assert_called_once_with('test')

  def testAttachNetworkFailRollsBack(self):
    b, client = setupBackend()
    client.connect_container_to_network.side_effect = APIError('boom')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'network attach')
    self.assertEqual(e.exception.reference, 'container.test')
    client.remove_container.assert_called_once_with('test', v=True, force=True)
    client.start.assert_not_called()

  def testAttachWanFailRollsBack(self):
    b, client = setupBackend()
    client.connect_container_to_network.side_effect = [None, APIError('boom')]
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'network attach')
    client.remove_container.assert_called_once_with('test', v=True, force=True)

  def testRemoveBridgeFailRollsBack(self):
    b, client = setupBackend()
    client.disconnect_container_from_network.side_effect = APIError('boom')
    c = setupContainer()

    with self.assertRaises(ProviderError):
      b.create_container(c, 'wan')

    client.connect_container_to_network.assert_not_called()
    client.remove_container.assert_called_once_with('test', v=True, force=True)

  def testStartFailRollsBack(self):
    b, client = setupBackend()
    client.start.side_effect = APIError('boom')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'start')
    client.remove_container.assert_called_once_with('test', v=True, force=True)

  def testAttachConnectionErrorRollsBack(self):
    b, client = setupBackend()
    client.connect_container_to_network.side_effect = requests.exceptions.ConnectionError('connection reset')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'network attach')
    self.assertIn('connection reset', str(e.exception))
    client.remove_container.assert_called_once_with('test', v=True, force=True)

  def testStartTimeoutRollsBack(self):
    b, client = setupBackend()
    client.start.side_effect = requests.exceptions.ReadTimeout('timed out')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'start')
    client.remove_container.assert_called_once_with('test', v=True, force=True)

  def testRollbackFailureKeepsOriginalError(self):
    b, client = setupBackend()
    client.start.side_effect = APIError('boom')
    client.remove_container.side_effect = requests.exceptions.ConnectionError('engine gone')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'start')
    self.assertIn('boom', str(e.exception))

  def testModuleContainerAttachesModuleNetwork(self):
    b, client = setupBackend()
    c = resources.Container('test', {'image': 'nginx', 'networks': ['network.cloud.other']}, module='other')

    b.create_container(c)

    self.assertEqual(client.create_container.call_args[1]['name'], 'test.other.container.drydock.run')
    client.connect_container_to_network.assert_called_once_with('test', 'cloud.other', ipv4_address=None, aliases=None)

  def testCreateFailDoesNotRollBack(self):
    b, client = setupBackend()
    client.create_container.side_effect = APIError('boom')
    c = setupContainer()

    with self.assertRaises(ProviderError) as e:
      b.create_container(c, 'wan')

    self.assertEqual(e.exception.step, 'create')
    client.remove_container.assert_not_called()

  def testNoImageFails(self):
    b, client = setupBackend()
    c = setupContainer()
    c.image = None

    with self.assertRaises(ProviderError):
      b.create_container(c)

    client.create_container.assert_not_called()

  def testAddsVolumes(self):
    b, client = setupBackend()
    c = setupContainer()
    c.volumes.append(resources.Volume('images.volume.drydock.run', '/images', 'volume'))
    c.volumes.append(resources.Volume(None, '/scratch', 'tmpfs'))

    b.create_container(c)

    mounts = client.create_host_config.call_args[1]['mounts']
    self.assertEqual(len(mounts), 3)
    self.assertEqual(mounts[0]['Source'], '/tmp/data')
    self.assertEqual(mounts[0]['Target'], '/data')
    self.assertEqual(mounts[0]['Type'], 'bind')
    self.assertEqual(mounts[1]['Source'], 'images.volume.drydock.run')
    self.assertEqual(mounts[1]['Type'], 'volume')
    self.assertEqual(mounts[2]['Type'], 'tmpfs')

  def testRelativeBindSourceFails(self):
    b, client = setupBackend()
    c = setupContainer()
    c.volumes = [resources.Volume('./data', '/data')]

    with self.assertRaises(ProviderError) as e:
      b.create_container(c)

    self.assertEqual(e.exception.step, 'volumes')
    client.create_container.assert_not_called()

  def testPublishesPorts(self):
    b, client = setupBackend()
    c = setupContainer()

    b.create_container(c)

    self.assertEqual(client.create_container.call_args[1]['ports'], [(8080, 'tcp'), (8081, 'tcp')])
    bindings = client.create_host_config.call_args[1]['port_bindings']
    self.assertEqual(bindings, {'8080/tcp': ('0.0.0.0', 9080)})

  def testPublishesPortRanges(self):
    b, client = setupBackend()
    c = setupContainer()
    c.ports = []
    c.port_ranges = [
      resources.PortRange('9000-9002', enable_host=True),
      resources.PortRange('7000-7001', protocol='udp'),
    ]

    b.create_container(c)

    ports = client.create_container.call_args[1]['ports']
    self.assertEqual(ports, [(9000, 'tcp'), (9001, 'tcp'), (9002, 'tcp'), (7000, 'udp'), (7001, 'udp')])
    bindings = client.create_host_config.call_args[1]['port_bindings']
    self.assertEqual(sorted(bindings.keys()), ['9000/tcp', '9001/tcp', '9002/tcp'])
    self.assertEqual(bindings['9001/tcp'], ('0.0.0.0', 9001))

  def testAddsResourceLimits(self):
    b, client = setupBackend()
    c = setupContainer()
    c.limits = resources.Limits(cpu=2000, cpu_pin=[1, 2], memory=1000)

    b.create_container(c)

    kwargs = client.create_host_config.call_args[1]
    self.assertEqual(kwargs['nano_cpus'], 2000000000)
    self.assertEqual(kwargs['cpuset_cpus'], '1,2')
    self.assertEqual(kwargs['mem_limit'], 1000 * 1024 * 1024)

  def testChildContainerUsesParentType(self):
    b, client = setupBackend()
    cluster = resources.K8sCluster('dev')
    server = cluster.add_child(resources.Container('server.dev', {'image': 'rancher/k3s:v1.27.4-k3s1'}))

    b.create_container(server)

    kwargs = client.create_container.call_args[1]
    self.assertEqual(kwargs['name'], 'server.dev.k8s-cluster.drydock.run')
    self.assertEqual(kwargs['labels']['drydock.type'], 'k8s_cluster')

class TestImages(unittest.TestCase):
  def testPullsImageWhenNotCached(self):
    b, client = setupBackend()

    b.pull_image(resources.Image('consul:v1.6.1'))

    client.pull.assert_called_once_with('consul', tag='v1.6.1', stream=True, decode=True)

  def testPullDefaultsToLatestTag(self):
    b, client = setupBackend()

    b.pull_image(resources.Image('consul'))

    client.pull.assert_called_once_with('consul', tag='latest', stream=True, decode=True)

  def testSkipsPullWhenCached(self):
    b, client = setupBackend()
    client.images.return_value = [{'Id': 'abc'}]

    b.pull_image(resources.Image('consul:v1.6.1'))

    client.pull.assert_not_called()

  def testForcedPullIgnoresCache(self):
    b, client = setupBackend()
    client.images.return_value = [{'Id': 'abc'}]

    b.pull_image(resources.Image('consul:v1.6.1', force=True))

    client.pull.assert_called_once_with('consul', tag='v1.6.1', stream=True, decode=True)

  def testPullErrorRaises(self):
    b, client = setupBackend()
    client.pull.return_value = iter([{'error': 'manifest unknown'}])

    with self.assertRaises(ProviderError) as e:
      b.pull_image(resources.Image('consul:nope'))

    self.assertIn('manifest unknown', str(e.exception))

class TestLookup(unittest.TestCase):
  def testFindContainerIdsMatchesExactName(self):
    b, client = setupBackend()
    client.containers.return_value = [
      {'Id': 'abc', 'Names': ['/test.container.drydock.run']},
      {'Id': 'def', 'Names': ['/mytest.container.drydock.run']},
    ]

    ids = b.find_container_ids('test', 'container')

    self.assertEqual(ids, ['abc'])
    client.containers.assert_called_once_with(all=True, filters={
      'name': 'test.container.drydock.run',
      'label': 'drydock.type=container',
    })

  def testFindContainerIdsInModule(self):
    b, client = setupBackend()
    client.containers.return_value = [
      {'Id': 'abc', 'Names': ['/test.container.drydock.run']},
      {'Id': 'def', 'Names': ['/test.other.container.drydock.run']},
    ]

    self.assertEqual(b.find_container_ids('test', 'container', 'other'), ['def'])

  def testRemoveContainerNotFound(self):
    b, client = setupBackend()
    client.remove_container.side_effect = NotFound('gone')

    with self.assertRaises(NotFoundError):
      b.remove_container('abc')

  def testRemoveContainerRemovesVolumes(self):
    b, client = setupBackend()

    b.remove_container('abc')

    client.remove_container.assert_called_once_with('abc', v=True, force=True)

class TestNetworks(unittest.TestCase):
  def testCreateNetworkReusesExisting(self):
    b, client = setupBackend()
    client.networks.return_value = [{'Name': 'wan', 'Id': 'net1'}]

    self.assertEqual(b.create_network('wan', '192.168.200.0/24'), 'net1')
    client.create_network.assert_not_called()

  def testCreateNetworkWithSubnet(self):
    b, client = setupBackend()
    client.networks.return_value = []
    client.create_network.return_value = {'Id': 'net2'}

    self.assertEqual(b.create_network('cloud', '10.5.0.0/16'), 'net2')

    kwargs = client.create_network.call_args[1]
    self.assertEqual(kwargs['ipam']['Config'][0]['Subnet'], '10.5.0.0/16')
    self.assertEqual(kwargs['labels'], {'drydock.type': 'network'})

  def testRemoveNetworkNotFound(self):
    b, client = setupBackend()
    client.remove_network.side_effect = NotFound('gone')

    with self.assertRaises(NotFoundError):
      b.remove_network('cloud')

  def testNetworkGateway(self):
    b, client = setupBackend()
    client.inspect_network.return_value = {'IPAM': {'Config': [{'Subnet': '10.5.0.0/16', 'Gateway': '10.5.0.1'}]}}

    self.assertEqual(b.network_gateway('cloud'), '10.5.0.1')

class TestVolumes(unittest.TestCase):
  def testCopyImagesRemovesHelper(self):
    b, client = setupBackend()
    client.images.return_value = [{'Id': 'alpine'}]
    client.get_image.return_value = [b'image data']
    client.create_container.return_value = {'Id': 'helper'}

    paths = b.copy_local_images_to_volume(['consul:v1.6.1'], 'images.volume.drydock.run')

    self.assertEqual(paths, ['/images/consul_v1.6.1.tar'])
    client.put_archive.assert_called_once_with('helper', '/images', mock.ANY)
    client.remove_container.assert_called_once_with('helper', force=True)

  def testCopyImagesHelperCleanupFailureKeepsCopyError(self):
    b, client = setupBackend()
    client.images.return_value = [{'Id': 'alpine'}]
    client.get_image.return_value = [b'image data']
    client.create_container.return_value = {'Id': 'helper'}
    client.put_archive.side_effect = APIError('disk full')
    client.remove_container.side_effect = APIError('removal in progress')

    with self.assertRaises(ProviderError) as e:
      b.copy_local_images_to_volume(['consul:v1.6.1'], 'images.volume.drydock.run')

    self.assertEqual(e.exception.step, 'image copy')
    self.assertIn('disk full', str(e.exception))

  def testRemoveVolumeNotFound(self):
    b, client = setupBackend()
    client.remove_volume.side_effect = NotFound('gone')

    with self.assertRaises(NotFoundError):
      b.remove_volume('images')

    client.remove_volume.assert_called_once_with('images.volume.drydock.run', force=True)

class TestPing(unittest.TestCase):
  def testPingReturnsVersion(self):
    b, client = setupBackend()
    client.version.return_value = {'Version': '24.0.5'}

    self.assertEqual(b.ping(), '24.0.5')

  def testPingUnreachableReturnsError(self):
    b, client = setupBackend()
    client.ping.side_effect = requests.exceptions.ConnectionError('refused')

    with self.assertRaises(ProviderError) as e:
      b.ping()

    self.assertEqual(e.exception.step, 'check')

class TestExecute(unittest.TestCase):
  def testExecuteCommandFailsOnExitCode(self):
    b, client = setupBackend()
    client.exec_create.return_value = {'Id': 'exec1'}
    client.exec_start.return_value = b'no such file'
    client.exec_inspect.return_value = {'ExitCode': 1}

    with self.assertRaises(ProviderError) as e:
      b.execute_command('abc', ['ls', '/nope'])

    self.assertIn('no such file', str(e.exception))

  def testExecuteCommandReturnsOutput(self):
    b, client = setupBackend()
    client.exec_create.return_value = {'Id': 'exec1'}
    client.exec_start.return_value = b'ok'
    client.exec_inspect.return_value = {'ExitCode': 0}

    self.assertEqual(b.execute_command('abc', ['true']), b'ok')

if __name__ == '__main__':
  unittest.main()
