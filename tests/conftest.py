import textwrap

import pytest

MAP_I3D = """\
<?xml version="1.0" encoding="iso-8859-1"?>
<i3D name="map">
  <Files>
    <File fileId="1" filename="data/infoLayer_farmlands.png"/>
    <File fileId="2" filename="data/infoLayer_fieldType.png"/>
    <File fileId="3" filename="data/densityMap_ground.png"/>
    <File fileId="4" filename="data/densityMap_height.png"/>
    <File fileId="5" filename="data/densityMap_fruits.png"/>
    <File fileId="6" filename="data/densityMap_weed.png"/>
    <File fileId="10" filename="foliage/wheat.xml"/>
  </Files>
  <Scene>
    <TerrainTransformGroup name="terrain">
      <Layers>
        <InfoLayer name="farmlands" fileId="1" numChannels="8"/>
        <InfoLayer name="fieldType" fileId="2" numChannels="2">
          <Group name="Kind" firstChannel="0" numChannels="2">
            <Option value="0" name="Grass"/>
            <Option value="3" name="Field"/>
          </Group>
        </InfoLayer>
        <DetailLayer name="terrainDetail" densityMapId="3" numDensityMapChannels="10">
          <Group name="GroundType" firstChannel="0" numChannels="4"/>
          <Group name="SprayType" firstChannel="5" numChannels="3"/>
        </DetailLayer>
        <DetailLayer name="terrainDetailHeight" densityMapId="4" numDensityMapChannels="14"
                     heightFirstChannel="6" heightNumChannels="6"
                     combinedValuesChannels="0 6 0" maxHeight="4"/>
        <FoliageMultiLayer densityMapId="5" numChannels="10" numTypeIndexChannels="5">
          <FoliageType name="wheat" foliageXmlId="10"/>
          <FoliageType name="barley"/>
        </FoliageMultiLayer>
        <FoliageMultiLayer densityMapId="6" numChannels="4">
          <FoliageType name="weed"/>
        </FoliageMultiLayer>
      </Layers>
    </TerrainTransformGroup>
  </Scene>
</i3D>
"""

MOD_FILES = {
    "modDesc.xml": """\
        <modDesc>
          <maps><map id="test" configFilename="maps/map.xml"/></maps>
        </modDesc>
    """,
    "maps/map.xml": """\
        <map>
          <densityMapHeightTypes filename="maps/config/heightTypes.xml"/>
          <fieldGround filename="$data/maps/maps_fieldGround.xml"/>
          <farmlands filename="maps/config/farmlands.xml"/>
        </map>
    """,
    "maps/config/heightTypes.xml": """\
        <map>
          <densityMapHeightTypes>
            <densityMapHeightType fillTypeName="WHEAT"/>
            <densityMapHeightType fillTypeName="STRAW"/>
          </densityMapHeightTypes>
        </map>
    """,
    "maps/config/farmlands.xml": """\
        <map>
          <farmlands>
            <farmland id="2"/>
            <farmland id="1" defaultFarmProperty="true"/>
          </farmlands>
        </map>
    """,
    "maps/data/foliage/wheat.xml": """\
        <foliageType>
          <foliageLayer>
            <foliageState name="invisible" isGrowing="true"/>
            <foliageState name="green" isGrowing="true"/>
            <foliageState name="harvestReady" isHarvestReady="true"/>
          </foliageLayer>
        </foliageType>
    """,
}

FIELD_GROUND = """\
    <fieldGround>
      <groundTypes>
        <stubbleTillage value="1"/>
        <sown value="7"/>
      </groundTypes>
      <sprayTypes>
        <fertilizer value="1"/>
        <lime value="4"/>
      </sprayTypes>
    </fieldGround>
"""


@pytest.fixture
def mod_map(tmp_path):
    """(i3d path, data dir) of a small mod map with its XML configs."""
    mod = tmp_path / "mod"
    for rel, text in MOD_FILES.items():
        p = mod / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(textwrap.dedent(text))
    i3d = mod / "maps" / "data" / "map.i3d"
    i3d.write_text(MAP_I3D, encoding="iso-8859-1")

    data_dir = tmp_path / "gamedata"
    (data_dir / "maps").mkdir(parents=True)
    (data_dir / "maps" / "maps_fieldGround.xml").write_text(textwrap.dedent(FIELD_GROUND))
    return i3d, data_dir
